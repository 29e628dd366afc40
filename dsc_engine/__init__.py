"""
dsc_engine - Collateralized-Debt Stablecoin Engine

Users lock collateral tokens and mint DSC against them. The engine keeps every
account at or above the minimum health factor and lets anyone liquidate
accounts that fall below it.

Usage:
    from dsc_engine import (
        TokenLedger, ERC20Token, StableToken, StaticPriceFeed, DSCEngine, to_fixed,
    )

    chain = TokenLedger("chain")
    weth = ERC20Token(chain, "WETH", "Wrapped Ether")
    dsc = StableToken(chain, owner="deployer")
    eth_usd = StaticPriceFeed(2000 * 10**8, updated_at=chain.current_time)

    engine = DSCEngine([weth], [eth_usd], dsc, clock=lambda: chain.current_time)
    dsc.transfer_ownership("deployer", engine.address)

    # Fund and approve, then deposit 10 WETH and mint 1000 DSC
    weth.faucet("alice", to_fixed(10))
    weth.approve("alice", engine.address, to_fixed(10))
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", to_fixed(10), to_fixed(1000))

    engine.get_health_factor("alice")   # 10 * 10**18
"""

# Core types
from .core import (
    PRECISION,
    PRECISION_DECIMALS,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_BONUS,
    LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    DEFAULT_ORACLE_TIMEOUT,
    SYSTEM_WALLET,
    to_fixed,
    feed_scale,
    EngineConfig,
    AccountInformation,
    SupportedAsset,
    CollateralDeposited,
    CollateralRedeemed,
    Move,
    Transaction,
    PendingTransaction,
    Unit,
    ExecuteResult,
    build_transaction,
    PriceFeed,
    FungibleAsset,
    MintableBurnable,
    SupportsRollback,
    # Engine errors
    EngineError,
    ValidationError,
    ZeroAmount,
    UnsupportedAsset,
    TokenAddressesAndPriceFeedAddressesMustBeSameLength,
    DuplicateAsset,
    InvariantError,
    HealthFactorBreached,
    HealthFactorOk,
    HealthFactorNotImproved,
    InteractionError,
    TransferFailed,
    MintFailed,
    OracleError,
    OracleStale,
    OracleUnavailable,
    BalanceUnderflow,
    ReentrancyDetected,
    # Token ledger errors
    LedgerError,
    UnitNotRegistered,
    TokenError,
    Unauthorized,
)

# Engine components
from .oracle import PriceOracleAdapter
from .collateral_ledger import CollateralLedger
from .debt_ledger import DebtLedger
from .health import (
    HealthStatus,
    calculate_health_factor,
    calculate_collateral_value,
    assess_health,
)
from .liquidation import (
    LiquidationEngine,
    LiquidationPlan,
    LiquidationResult,
    calculate_liquidation,
)
from .engine import DSCEngine, ReentrancyGuard

# Reference collaborators
from .ledger import TokenLedger
from .tokens import ERC20Token, StableToken
from .pricing_source import StaticPriceFeed, TimeSeriesPriceFeed

# Simulation
from .simulation import StressResult, generate_price_path, run_stress_scenario, summarize

from .logging_setup import configure_logging

__all__ = [
    # Constants
    'PRECISION',
    'PRECISION_DECIMALS',
    'ADDITIONAL_FEED_PRECISION',
    'LIQUIDATION_THRESHOLD',
    'LIQUIDATION_BONUS',
    'LIQUIDATION_PRECISION',
    'MIN_HEALTH_FACTOR',
    'MAX_HEALTH_FACTOR',
    'DEFAULT_ORACLE_TIMEOUT',
    'SYSTEM_WALLET',
    'to_fixed',
    'feed_scale',
    # Data
    'EngineConfig',
    'AccountInformation',
    'SupportedAsset',
    'CollateralDeposited',
    'CollateralRedeemed',
    'Move',
    'Transaction',
    'PendingTransaction',
    'Unit',
    'ExecuteResult',
    'build_transaction',
    # Protocols
    'PriceFeed',
    'FungibleAsset',
    'MintableBurnable',
    'SupportsRollback',
    # Errors
    'EngineError',
    'ValidationError',
    'ZeroAmount',
    'UnsupportedAsset',
    'TokenAddressesAndPriceFeedAddressesMustBeSameLength',
    'DuplicateAsset',
    'InvariantError',
    'HealthFactorBreached',
    'HealthFactorOk',
    'HealthFactorNotImproved',
    'InteractionError',
    'TransferFailed',
    'MintFailed',
    'OracleError',
    'OracleStale',
    'OracleUnavailable',
    'BalanceUnderflow',
    'ReentrancyDetected',
    'LedgerError',
    'UnitNotRegistered',
    'TokenError',
    'Unauthorized',
    # Engine
    'PriceOracleAdapter',
    'CollateralLedger',
    'DebtLedger',
    'HealthStatus',
    'calculate_health_factor',
    'calculate_collateral_value',
    'assess_health',
    'LiquidationEngine',
    'LiquidationPlan',
    'LiquidationResult',
    'calculate_liquidation',
    'DSCEngine',
    'ReentrancyGuard',
    # Collaborators
    'TokenLedger',
    'ERC20Token',
    'StableToken',
    'StaticPriceFeed',
    'TimeSeriesPriceFeed',
    # Simulation
    'StressResult',
    'generate_price_path',
    'run_stress_scenario',
    'summarize',
    'configure_logging',
]

__version__ = '1.0.0'
