"""
Constant-product AMM program.

A pool is a config record at a derived address, two vaults that are the
config's associated token accounts for ``mint_x`` and ``mint_y``, and an LP
mint whose mint authority is the config. The program signs vault transfers
and LP mints with the config's derived signature.

Accounts:
    Initialize  (0): [initializer(s, w), mint_lp(w), config(w),
                      system_program, token_program]
    Deposit     (1): [user(s), mint_lp(w), vault_x(w), vault_y(w),
                      user_x_ata(w), user_y_ata(w), user_lp_ata(w), config,
                      token_program]
    Withdraw    (2): as Deposit
    Swap        (3): [user(s), user_x_ata(w), user_y_ata(w), vault_x(w),
                      vault_y(w), config, token_program]
    UpdateState (4): [authority(s), config(w)]
"""

from typing import List, Tuple

from solders.pubkey import Pubkey

from ..constants import (
    LP_DECIMALS,
    CURVE_PRECISION,
    MINT_ACCOUNT_LEN,
    POOL_CONFIG_LEN,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from ..exceptions import (
    CurveFailure,
    InvalidAccountData,
    InvalidArgument,
    NotEnoughAccountKeys,
)
from ..guards import (
    check_associated_address,
    check_mint,
    check_program_id,
    check_signer,
)
from ..helpers import init_program_account
from ..logger import get_logger
from ..runtime import token_program
from ..runtime.account import AccountInfo
from ..runtime.token_program import Mint, token_balance
from .curve import ConstantProduct, CurveError, LiquidityPair
from .instructions import (
    Deposit,
    Initialize,
    Swap,
    UpdateState,
    Withdraw,
    unpack_instruction,
)
from .state import AmmState, PoolConfig, config_seeds, mint_lp_seeds

logger = get_logger(__name__)


def _accounts(accounts: List[AccountInfo], count: int) -> List[AccountInfo]:
    if len(accounts) < count:
        raise NotEnoughAccountKeys(f"expected {count} accounts, got {len(accounts)}")
    return accounts[:count]


def _check_vaults(
    pool: PoolConfig,
    config: AccountInfo,
    vault_x: AccountInfo,
    vault_y: AccountInfo,
    token: AccountInfo,
) -> None:
    check_associated_address(vault_x, config.key, pool.mint_x, token.key)
    check_associated_address(vault_y, config.key, pool.mint_y, token.key)


def _check_mint_lp(mint_lp: AccountInfo, config: AccountInfo, token: AccountInfo) -> Mint:
    """The LP mint must be a token mint that only this pool's config can mint."""
    check_mint(mint_lp, token.key)
    mint = Mint.unpack(mint_lp.data)
    if mint.mint_authority != config.key:
        logger.debug(f"LP mint {mint_lp.key} authority is {mint.mint_authority}, expected {config.key}")
        raise InvalidAccountData(f"{mint_lp.key} is not the LP mint of {config.key}")
    return mint


def _require_state(pool: PoolConfig, *allowed: AmmState) -> None:
    if pool.state not in allowed:
        logger.debug(f"Pool state {pool.state.name} not in {[s.name for s in allowed]}")
        raise InvalidAccountData(f"pool is {pool.state.name}")


# ════════════════════════════════════════════════════════════════════
#  INITIALIZE
# ════════════════════════════════════════════════════════════════════

def process_initialize(ctx, program_id: Pubkey, accounts: List[AccountInfo], args: Initialize) -> None:
    initializer, mint_lp, config, system, token = _accounts(accounts, 5)
    check_program_id(system, SYSTEM_PROGRAM_ID)
    check_program_id(token, TOKEN_PROGRAM_ID)
    check_signer(initializer)
    if args.mint_x == args.mint_y:
        logger.debug(f"Initialize rejected: both sides use mint {args.mint_x}")
        raise InvalidArgument("pool mints must differ")

    signer = config_seeds(args.seed, args.mint_x, args.mint_y) + [bytes([args.config_bump])]
    init_program_account(ctx, initializer, config, signer, POOL_CONFIG_LEN, program_id)

    pool = PoolConfig()
    pool.set_inner(
        seed=args.seed,
        authority=args.authority,
        mint_x=args.mint_x,
        mint_y=args.mint_y,
        fee=args.fee,
        config_bump=args.config_bump,
    )
    config.write_data(pool.pack())

    lp_signer = mint_lp_seeds(config.key) + [bytes([args.lp_bump])]
    init_program_account(ctx, initializer, mint_lp, lp_signer, MINT_ACCOUNT_LEN, token.key)
    ctx.invoke(
        token_program.initialize_mint2(mint_lp.key, LP_DECIMALS, config.key, None, token.key),
        [mint_lp],
    )

    ctx.log(f"Initialize: pool {config.key} fee {args.fee} bps")
    logger.info(f"Initialize: pool {config.key} ({args.mint_x}/{args.mint_y}, seed={args.seed}, fee={args.fee})")


# ════════════════════════════════════════════════════════════════════
#  DEPOSIT / WITHDRAW
# ════════════════════════════════════════════════════════════════════

def _liquidity_accounts(ctx, program_id: Pubkey, accounts: List[AccountInfo], args) -> Tuple:
    (
        user, mint_lp, vault_x, vault_y,
        user_x_ata, user_y_ata, user_lp_ata, config, token,
    ) = _accounts(accounts, 9)
    check_program_id(token, TOKEN_PROGRAM_ID)
    check_signer(user)
    args.check_expiration(ctx.clock)
    pool = PoolConfig.load(config, program_id)
    return pool, (user, mint_lp, vault_x, vault_y, user_x_ata, user_y_ata, user_lp_ata, config, token)


def process_deposit(ctx, program_id: Pubkey, accounts: List[AccountInfo], args: Deposit) -> None:
    pool, (
        user, mint_lp, vault_x, vault_y,
        user_x_ata, user_y_ata, user_lp_ata, config, token,
    ) = _liquidity_accounts(ctx, program_id, accounts, args)

    _require_state(pool, AmmState.INITIALIZED)
    _check_vaults(pool, config, vault_x, vault_y, token)
    supply = _check_mint_lp(mint_lp, config, token).supply

    x_balance = token_balance(vault_x)
    y_balance = token_balance(vault_y)
    if supply == 0 and x_balance == 0 and y_balance == 0:
        x, y = args.max_x, args.max_y
    else:
        try:
            amounts = ConstantProduct.xy_deposit_amounts_from_l(
                x_balance, y_balance, supply, args.amount, CURVE_PRECISION,
            )
        except CurveError as e:
            raise InvalidArgument(f"deposit quote failed: {e}") from e
        x, y = amounts.x, amounts.y

    if x > args.max_x or y > args.max_y:
        logger.debug(f"Deposit slippage: needs ({x}, {y}), max ({args.max_x}, {args.max_y})")
        raise InvalidArgument(f"deposit of ({x}, {y}) exceeds max ({args.max_x}, {args.max_y})")

    ctx.invoke(
        token_program.transfer(user_x_ata.key, vault_x.key, user.key, x, token.key),
        [user_x_ata, vault_x, user],
    )
    ctx.invoke(
        token_program.transfer(user_y_ata.key, vault_y.key, user.key, y, token.key),
        [user_y_ata, vault_y, user],
    )
    ctx.invoke_signed(
        token_program.mint_to(mint_lp.key, user_lp_ata.key, config.key, args.amount, token.key),
        [mint_lp, user_lp_ata, config],
        [pool.signer_seeds()],
    )

    ctx.log(f"Deposit: {x} x + {y} y for {args.amount} LP")
    logger.info(f"Deposit: {user.key} added ({x}, {y}) to {config.key}, minted {args.amount} LP")


def process_withdraw(ctx, program_id: Pubkey, accounts: List[AccountInfo], args: Withdraw) -> None:
    pool, (
        user, mint_lp, vault_x, vault_y,
        user_x_ata, user_y_ata, user_lp_ata, config, token,
    ) = _liquidity_accounts(ctx, program_id, accounts, args)

    _require_state(pool, AmmState.INITIALIZED, AmmState.WITHDRAW_ONLY)
    _check_vaults(pool, config, vault_x, vault_y, token)
    supply = _check_mint_lp(mint_lp, config, token).supply

    x_balance = token_balance(vault_x)
    y_balance = token_balance(vault_y)
    if args.amount == supply:
        x, y = x_balance, y_balance
    else:
        try:
            amounts = ConstantProduct.xy_withdraw_amounts_from_l(
                x_balance, y_balance, supply, args.amount, CURVE_PRECISION,
            )
        except CurveError as e:
            raise InvalidArgument(f"withdraw quote failed: {e}") from e
        x, y = amounts.x, amounts.y

    if x == 0 and y == 0:
        logger.debug(f"Withdraw of {args.amount} LP rounds to nothing against supply {supply}")
        raise InvalidArgument("withdrawal would release nothing")

    if x < args.min_x or y < args.min_y:
        logger.debug(f"Withdraw slippage: gets ({x}, {y}), min ({args.min_x}, {args.min_y})")
        raise InvalidArgument(f"withdrawal of ({x}, {y}) below min ({args.min_x}, {args.min_y})")

    signer = pool.signer_seeds()
    ctx.invoke_signed(
        token_program.transfer(vault_x.key, user_x_ata.key, config.key, x, token.key),
        [vault_x, user_x_ata, config],
        [signer],
    )
    ctx.invoke_signed(
        token_program.transfer(vault_y.key, user_y_ata.key, config.key, y, token.key),
        [vault_y, user_y_ata, config],
        [signer],
    )
    ctx.invoke(
        token_program.burn(user_lp_ata.key, mint_lp.key, user.key, args.amount, token.key),
        [user_lp_ata, mint_lp, user],
    )

    ctx.log(f"Withdraw: {args.amount} LP for {x} x + {y} y")
    logger.info(f"Withdraw: {user.key} burned {args.amount} LP of {config.key} for ({x}, {y})")


# ════════════════════════════════════════════════════════════════════
#  SWAP
# ════════════════════════════════════════════════════════════════════

def process_swap(ctx, program_id: Pubkey, accounts: List[AccountInfo], args: Swap) -> None:
    user, user_x_ata, user_y_ata, vault_x, vault_y, config, token = _accounts(accounts, 7)
    check_program_id(token, TOKEN_PROGRAM_ID)
    check_signer(user)
    args.check_expiration(ctx.clock)

    pool = PoolConfig.load(config, program_id)
    _require_state(pool, AmmState.INITIALIZED)
    _check_vaults(pool, config, vault_x, vault_y, token)

    try:
        curve = ConstantProduct(token_balance(vault_x), token_balance(vault_y), pool.fee)
        result = curve.swap(LiquidityPair.X if args.is_x else LiquidityPair.Y, args.amount, args.min)
    except CurveError as e:
        logger.debug(f"Swap rejected by curve: {e}")
        raise CurveFailure(message=f"swap failed: {e}") from e

    if result.deposit == 0 or result.withdraw == 0:
        raise InvalidArgument("swap would move nothing")

    if args.is_x:
        user_in, vault_in, vault_out, user_out = user_x_ata, vault_x, vault_y, user_y_ata
    else:
        user_in, vault_in, vault_out, user_out = user_y_ata, vault_y, vault_x, user_x_ata

    ctx.invoke(
        token_program.transfer(user_in.key, vault_in.key, user.key, result.deposit, token.key),
        [user_in, vault_in, user],
    )
    ctx.invoke_signed(
        token_program.transfer(vault_out.key, user_out.key, config.key, result.withdraw, token.key),
        [vault_out, user_out, config],
        [pool.signer_seeds()],
    )

    side = "x" if args.is_x else "y"
    ctx.log(f"Swap: {result.deposit} {side} in, {result.withdraw} out, fee {result.fee}")
    logger.info(f"Swap: {user.key} on {config.key}: {result.deposit} {side} in, {result.withdraw} out")


# ════════════════════════════════════════════════════════════════════
#  UPDATE STATE
# ════════════════════════════════════════════════════════════════════

def process_update_state(ctx, program_id: Pubkey, accounts: List[AccountInfo], args: UpdateState) -> None:
    authority, config = _accounts(accounts, 2)
    check_signer(authority)

    pool = PoolConfig.load(config, program_id)
    if pool.has_authority() != authority.key:
        logger.debug(f"UpdateState on {config.key} by {authority.key}, authority is {pool.has_authority()}")
        raise InvalidAccountData(f"{authority.key} is not the authority of {config.key}")

    previous = pool.state
    pool.set_state(args.state)
    config.write_data(pool.pack())

    ctx.log(f"UpdateState: {previous.name} -> {pool.state.name}")
    logger.info(f"UpdateState: pool {config.key} {previous.name} -> {pool.state.name}")


_HANDLERS = {
    Initialize: process_initialize,
    Deposit: process_deposit,
    Withdraw: process_withdraw,
    Swap: process_swap,
    UpdateState: process_update_state,
}


def process_instruction(ctx, program_id: Pubkey, accounts: List[AccountInfo], data: bytes) -> None:
    """Entrypoint: decode the discriminator and payload, then run the handler."""
    instruction = unpack_instruction(data)
    _HANDLERS[type(instruction)](ctx, program_id, accounts, instruction)
