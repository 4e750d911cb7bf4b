"""
Asset Lineage Processor.

Derives storable records from a block. derive_block() is pure with
respect to the store: everything it needs about existing assets comes in
through the AssetState snapshot, so the live sync and the backfill tool
produce identical records for the same block and snapshot.
"""

from datetime import timedelta
from decimal import Decimal, localcontext

from loguru import logger

from asset_indexer.config.constants import (
    COIN,
    MAX_ASSET_DECIMALS,
    SUB_ASSET_DELIMITER,
    UNKNOWN_PARENT_NAME,
)
from asset_indexer.models.enums import (
    AssetType,
    FutureType,
    TransactionKind,
    TransferType,
)
from asset_indexer.services.chain.payloads import (
    ChainBlock,
    ChainTransaction,
    FuturePayload,
    TxOutput,
)
from asset_indexer.services.indexer.classifier import (
    CreateAction,
    FutureAction,
    MintAction,
    StandardAction,
    TransferAction,
    UnknownAction,
    UpdateAction,
    classify,
    log_unknown,
)
from asset_indexer.services.indexer.records import (
    AssetInfo,
    AssetRecord,
    AssetState,
    AssetUpdateRecord,
    BlockRecord,
    BlockRecords,
    FutureOutputRecord,
    TransactionRecord,
    TransactionRecords,
    TransferRecord,
)


def to_display_amount(raw: int | str | Decimal, decimals: int) -> Decimal:
    """
    Convert a smallest-unit amount to display units.

    Args:
        raw: Integer amount in smallest on-chain units
        decimals: Decimal precision of the asset (0-8)

    Returns:
        raw / 10**decimals as an exact Decimal, so 10**12 with 8
        decimals is 10000, not 1.0

    Raises:
        ValueError: If decimals is out of range or raw is negative
    """
    if not 0 <= decimals <= MAX_ASSET_DECIMALS:
        raise ValueError(f"decimals must be between 0 and {MAX_ASSET_DECIMALS}: {decimals}")

    with localcontext() as ctx:
        ctx.prec = 60
        value = Decimal(raw)
        if value < 0:
            raise ValueError(f"negative amount: {raw}")
        return value / (Decimal(10) ** decimals)


def compose_sub_asset_name(parent_name: str, child_name: str) -> str:
    """
    Build the full name of a sub-asset.

    The parent part is upper-cased; the child part is kept exactly as
    given, including case and whitespace.
    """
    return f"{parent_name.upper()}{SUB_ASSET_DELIMITER}{child_name}"


def sender_of(tx: ChainTransaction) -> str | None:
    """
    Attribute a sender to a transaction.

    Uses the address of the first input that carries one. Multi-input
    transactions with different owners are attributed to that input only.
    """
    for tx_input in tx.inputs:
        if tx_input.address:
            return tx_input.address
    return None


def derive_block(block: ChainBlock, prior_state: AssetState) -> BlockRecords:
    """
    Derive all records of a block.

    Transactions are processed in block order. Assets created earlier in
    the block are visible to later transactions of the same block.
    Failures are isolated per transaction.

    Args:
        block: Parsed chain block
        prior_state: Assets known before this block (not mutated)

    Returns:
        Block, transaction, asset and transfer records plus warnings
    """
    state = prior_state.copy()
    records = BlockRecords(
        block=BlockRecord(
            height=block.height,
            hash=block.hash,
            timestamp=block.time,
            previous_hash=block.previous_hash,
            merkle_root=block.merkle_root,
            size=block.size,
            transaction_ids=list(block.transaction_ids),
            miner=block.miner,
            reward=block.reward,
        )
    )

    for tx in block.transactions:
        try:
            derived = _derive_transaction(tx, block, state, records)
        except Exception as e:
            records.errors += 1
            logger.error(
                f"[Lineage] Failed to derive tx {tx.txid} at block {block.height}: {e}"
            )
            continue

        if derived:
            records.transactions.append(derived)

    return records


def _derive_transaction(
    tx: ChainTransaction,
    block: ChainBlock,
    state: AssetState,
    records: BlockRecords,
) -> TransactionRecords | None:
    action = classify(tx)

    if isinstance(action, StandardAction):
        return None
    if isinstance(action, UnknownAction):
        log_unknown(action, block.height)
        records.skipped += 1
        return None
    if isinstance(action, CreateAction):
        return _derive_creation(action, block, state, records)
    if isinstance(action, MintAction):
        return _derive_mint(action, block, state, records)
    if isinstance(action, TransferAction):
        return _derive_transfer(action, block, state, records)
    if isinstance(action, UpdateAction):
        return _derive_update(action, block, state, records)
    if isinstance(action, FutureAction):
        return _derive_future(action, block, state, records)

    raise TypeError(f"Unhandled action {type(action).__name__}")


def _warn(records: BlockRecords, message: str) -> None:
    logger.warning(message)
    records.warnings.append(message)
    records.skipped += 1


def _transaction_record(
    tx: ChainTransaction,
    block: ChainBlock,
    kind: TransactionKind,
    **summary,
) -> TransactionRecord:
    return TransactionRecord(
        txid=tx.txid,
        block_height=block.height,
        block_hash=block.hash,
        tx_index=tx.index,
        timestamp=block.time,
        tx_type=kind,
        type_code=tx.type_code,
        size=tx.size,
        inputs=[
            {"address": i.address, "txid": i.txid, "vout": i.vout}
            for i in tx.inputs
            if not i.is_coinbase
        ],
        outputs=[
            {
                "n": o.n,
                "address": o.address,
                "value": str(o.value),
                "asset": (
                    {
                        "name": o.asset.name,
                        "asset_id": o.asset.asset_id,
                        "amount": str(o.asset.amount),
                    }
                    if o.asset
                    else None
                ),
            }
            for o in tx.outputs
        ],
        **summary,
    )


# ========================================================================
# CREATION
# ========================================================================


def _derive_creation(
    action: CreateAction,
    block: ChainBlock,
    state: AssetState,
    records: BlockRecords,
) -> TransactionRecords | None:
    tx = action.tx
    payload = action.payload

    if not payload.name:
        _warn(records, f"[Lineage] Creation {tx.txid} has no asset name, skipping")
        return None

    decimals = payload.decimals
    if not 0 <= decimals <= MAX_ASSET_DECIMALS:
        clamped = min(max(decimals, 0), MAX_ASSET_DECIMALS)
        logger.warning(
            f"[Lineage] Creation {tx.txid} declares decimals={decimals}, using {clamped}"
        )
        decimals = clamped

    asset = AssetRecord(
        asset_id=tx.txid,
        name=payload.name,
        asset_type=AssetType.NON_FUNGIBLE if payload.is_unique else AssetType.FUNGIBLE,
        created_txid=tx.txid,
        created_block_height=block.height,
        created_at_block=block.time,
        creator=payload.owner_address,
        is_root=payload.is_root,
        is_unique=payload.is_unique,
        decimals=decimals,
        max_mint_count=payload.max_mint_count,
        updatable=payload.updatable,
        reference_hash=payload.reference_hash,
        owner=payload.owner_address,
    )

    if not payload.is_root:
        asset.is_sub_asset = True
        asset.root_id = payload.root_id
        asset.sub_asset_name = payload.name

        parent = state.get(payload.root_id)
        if parent:
            asset.name = compose_sub_asset_name(parent.name, payload.name)
            asset.parent_asset_id = parent.asset_id
            asset.parent_asset_name = parent.name.upper()
        else:
            asset.name = compose_sub_asset_name(UNKNOWN_PARENT_NAME, payload.name)
            asset.parent_pending = True
            message = (
                f"[Lineage] Parent {payload.root_id} of sub-asset '{payload.name}' "
                f"({tx.txid}) not indexed yet, stored as {asset.name} "
                f"pending reconciliation"
            )
            logger.warning(message)
            records.warnings.append(message)

    state.add(
        AssetInfo(
            asset_id=asset.asset_id,
            name=asset.name,
            decimals=asset.decimals,
            is_root=asset.is_root,
            is_sub_asset=asset.is_sub_asset,
            updatable=asset.updatable,
        )
    )

    logger.info(
        f"[Lineage] Asset created: {asset.name} ({tx.txid}) at block {block.height}"
    )

    return TransactionRecords(
        transaction=_transaction_record(
            tx,
            block,
            TransactionKind.ASSET_CREATE,
            asset_id=asset.asset_id,
            asset_name=asset.name,
            to_address=asset.owner,
        ),
        asset=asset,
    )


# ========================================================================
# MINT
# ========================================================================


def _derive_mint(
    action: MintAction,
    block: ChainBlock,
    state: AssetState,
    records: BlockRecords,
) -> TransactionRecords | None:
    tx = action.tx
    payload = action.payload
    outputs = tx.asset_outputs

    asset_id = payload.asset_id
    asset_name = payload.asset_name
    if not asset_id and not asset_name:
        first = next((o.asset for o in outputs if o.asset), None)
        if first:
            asset_id, asset_name = first.asset_id, first.name

    info = state.resolve(asset_id, asset_name)
    if not info:
        _warn(
            records,
            f"[Lineage] Mint {tx.txid} targets unknown asset "
            f"{asset_id or asset_name}, skipping",
        )
        return None

    # (vout, recipient, raw amount)
    movements: list[tuple[int, str | None, int | None]] = []
    carrying = [out for out in outputs if out.asset]
    markers = [out for out in outputs if not out.asset]

    for out in carrying:
        movements.append((out.n, out.address or payload.target_address, out.asset.amount))

    if carrying:
        for out in markers:
            _warn(
                records,
                f"[Lineage] Mint {tx.txid}:{out.n} marked as asset but carries "
                f"no asset data, skipping",
            )
    elif markers:
        # The payload amount is minted once, preferably to the target output
        target = next(
            (
                out
                for out in markers
                if payload.target_address and out.address == payload.target_address
            ),
            markers[0],
        )
        movements.append((target.n, target.address or payload.target_address, payload.amount))
        for out in markers:
            if out is not target:
                _warn(
                    records,
                    f"[Lineage] Mint {tx.txid}:{out.n} is an extra marker output, "
                    f"payload amount already applied to output {target.n}",
                )
    else:
        movements.append((0, payload.target_address, payload.amount))

    transfers: list[TransferRecord] = []
    for vout, recipient, raw in movements:
        if not recipient:
            _warn(records, f"[Lineage] Mint {tx.txid}:{vout} has no recipient, skipping")
            continue
        if raw is None:
            _warn(records, f"[Lineage] Mint {tx.txid}:{vout} has no amount, skipping")
            continue

        transfers.append(
            TransferRecord(
                txid=tx.txid,
                vout=vout,
                asset_id=info.asset_id,
                asset_name=info.name,
                transfer_type=TransferType.MINT,
                from_address=None,
                to_address=recipient,
                amount=to_display_amount(raw, info.decimals),
                amount_raw=str(raw),
                block_height=block.height,
                block_hash=block.hash,
                tx_index=tx.index,
                timestamp=block.time,
            )
        )

    if not transfers:
        return None

    total = sum((t.amount for t in transfers), Decimal("0"))
    logger.info(
        f"[Lineage] Minted {total} {info.name} to {transfers[0].to_address} "
        f"({tx.txid})"
    )

    return TransactionRecords(
        transaction=_transaction_record(
            tx,
            block,
            TransactionKind.ASSET_MINT,
            asset_id=info.asset_id,
            asset_name=info.name,
            amount=total,
            to_address=transfers[0].to_address,
        ),
        transfers=transfers,
    )


# ========================================================================
# TRANSFER
# ========================================================================


def _derive_transfer(
    action: TransferAction,
    block: ChainBlock,
    state: AssetState,
    records: BlockRecords,
) -> TransactionRecords | None:
    tx = action.tx
    transfers = _asset_transfers(tx, action.outputs, block, state, records)

    if not transfers:
        return None

    first = transfers[0]
    logger.debug(
        f"[Lineage] {len(transfers)} asset transfer(s) in {tx.txid}, "
        f"first: {first.amount} {first.asset_name} {first.from_address} -> {first.to_address}"
    )

    return TransactionRecords(
        transaction=_transaction_record(
            tx,
            block,
            TransactionKind.ASSET_TRANSFER,
            asset_id=first.asset_id,
            asset_name=first.asset_name,
            amount=first.amount,
            from_address=first.from_address,
            to_address=first.to_address,
        ),
        transfers=transfers,
    )


def _asset_transfers(
    tx: ChainTransaction,
    outputs: list[TxOutput],
    block: ChainBlock,
    state: AssetState,
    records: BlockRecords,
) -> list[TransferRecord]:
    """Transfer records of the qualifying asset outputs of a value transaction."""
    sender = sender_of(tx)
    transfers: list[TransferRecord] = []

    for out in outputs:
        where = f"{tx.txid}:{out.n}"
        if out.asset is None:
            _warn(records, f"[Lineage] Output {where} marked as asset but carries no asset data")
            continue

        info = state.resolve(out.asset.asset_id, out.asset.name)
        if not info:
            _warn(
                records,
                f"[Lineage] Output {where} moves unknown asset "
                f"{out.asset.asset_id or out.asset.name}, skipping",
            )
            continue

        if not out.address:
            _warn(records, f"[Lineage] Output {where} has no recipient address, skipping")
            continue

        transfers.append(
            TransferRecord(
                txid=tx.txid,
                vout=out.n,
                asset_id=info.asset_id,
                asset_name=info.name,
                transfer_type=TransferType.TRANSFER,
                from_address=sender,
                to_address=out.address,
                amount=to_display_amount(out.asset.amount, info.decimals),
                amount_raw=str(out.asset.amount),
                block_height=block.height,
                block_hash=block.hash,
                tx_index=tx.index,
                timestamp=block.time,
            )
        )

    return transfers


# ========================================================================
# FUTURE
# ========================================================================


def _derive_future(
    action: FutureAction,
    block: ChainBlock,
    state: AssetState,
    records: BlockRecords,
) -> TransactionRecords | None:
    tx = action.tx
    transfers = _asset_transfers(tx, action.outputs, block, state, records)
    future = _future_output(tx, action.payload, block, state, records)

    if future is None:
        if not transfers:
            return None
        first = transfers[0]
        summary = {
            "asset_id": first.asset_id,
            "asset_name": first.asset_name,
            "amount": first.amount,
            "from_address": first.from_address,
            "to_address": first.to_address,
        }
    else:
        summary = {
            "asset_id": future.asset_id,
            "asset_name": future.asset_name,
            "amount": future.amount,
            "from_address": sender_of(tx),
            "to_address": future.recipient,
        }
        logger.info(
            f"[Lineage] Future {tx.txid}:{future.vout} locks {future.amount_raw} "
            f"{future.asset_name or future.future_type} for {future.recipient} until "
            f"height {future.unlock_height} or {future.unlock_time}"
        )

    return TransactionRecords(
        transaction=_transaction_record(
            tx,
            block,
            TransactionKind.FUTURE_LOCK if future else TransactionKind.ASSET_TRANSFER,
            **summary,
        ),
        transfers=transfers,
        future=future,
    )


def _future_output(
    tx: ChainTransaction,
    payload: FuturePayload,
    block: ChainBlock,
    state: AssetState,
    records: BlockRecords,
) -> FutureOutputRecord | None:
    """
    Build the locked output record of a future transaction.

    A negative maturity or lock time disables that unlock condition.
    """
    index = payload.lock_output_index
    out = next((o for o in tx.outputs if o.n == index), None) if index is not None else None
    if out is None:
        _warn(records, f"[Lineage] Future {tx.txid} has invalid lock output index {index}")
        return None
    if not out.address:
        _warn(records, f"[Lineage] Future {tx.txid}:{out.n} has no recipient address")
        return None

    asset_id = asset_name = None
    if out.carries_asset:
        if out.asset is None:
            _warn(records, f"[Lineage] Future {tx.txid}:{out.n} locks an asset without asset data")
            return None

        future_type = FutureType.ASSET
        amount_raw = str(out.asset.amount)
        info = state.resolve(out.asset.asset_id, out.asset.name)
        if info:
            asset_id, asset_name = info.asset_id, info.name
            amount = to_display_amount(out.asset.amount, info.decimals)
        else:
            asset_id, asset_name = out.asset.asset_id, out.asset.name
            amount = None
            message = (
                f"[Lineage] Future {tx.txid}:{out.n} locks unknown asset "
                f"{asset_id or asset_name}, amount kept in smallest units"
            )
            logger.warning(message)
            records.warnings.append(message)
    else:
        future_type = FutureType.NATIVE
        amount = out.value
        amount_raw = str(int(out.value * COIN))

    unlock_height = block.height + payload.maturity if payload.maturity >= 0 else None
    unlock_time = None
    if payload.lock_time >= 0 and block.time is not None:
        unlock_time = block.time + timedelta(seconds=payload.lock_time)
    if unlock_height is None and payload.lock_time < 0:
        logger.warning(f"[Lineage] Future {tx.txid}:{out.n} has no unlock condition")

    return FutureOutputRecord(
        txid=tx.txid,
        vout=out.n,
        future_type=future_type,
        recipient=out.address,
        amount=amount,
        amount_raw=amount_raw,
        asset_id=asset_id,
        asset_name=asset_name,
        maturity=payload.maturity,
        lock_time=payload.lock_time,
        updatable_by_destination=payload.updatable_by_destination,
        created_height=block.height,
        block_hash=block.hash,
        created_at_block=block.time,
        unlock_height=unlock_height,
        unlock_time=unlock_time,
    )


# ========================================================================
# UPDATE
# ========================================================================


def _derive_update(
    action: UpdateAction,
    block: ChainBlock,
    state: AssetState,
    records: BlockRecords,
) -> TransactionRecords | None:
    tx = action.tx
    payload = action.payload

    info = state.resolve(payload.asset_id, payload.asset_name)
    if not info:
        _warn(
            records,
            f"[Lineage] Consistency anomaly: update {tx.txid} targets asset "
            f"{payload.asset_id or payload.asset_name} which was never created, skipping",
        )
        return None

    if not info.updatable:
        _warn(
            records,
            f"[Lineage] Consistency anomaly: update {tx.txid} targets non-updatable "
            f"asset {info.name}, skipping",
        )
        return None

    update = AssetUpdateRecord(
        asset_id=info.asset_id,
        txid=tx.txid,
        block_height=block.height,
        updatable=payload.updatable,
        reference_hash=payload.reference_hash,
        owner=payload.owner_address,
        max_mint_count=payload.max_mint_count,
    )
    if payload.updatable is not None:
        state.set_updatable(info.asset_id, payload.updatable)

    logger.info(f"[Lineage] Asset updated: {info.name} ({tx.txid})")

    return TransactionRecords(
        transaction=_transaction_record(
            tx,
            block,
            TransactionKind.ASSET_UPDATE,
            asset_id=info.asset_id,
            asset_name=info.name,
            to_address=payload.owner_address,
        ),
        update=update,
    )
