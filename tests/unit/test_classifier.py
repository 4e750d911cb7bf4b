"""Unit tests for the transaction classifier."""

import pytest

from asset_indexer.services.chain.payloads import (
    ChainTransaction,
    FuturePayload,
    MintAssetPayload,
    NewAssetPayload,
    OutputAsset,
    TxOutput,
    UpdateAssetPayload,
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
)


def _tx(type_code: int, **kwargs) -> ChainTransaction:
    return ChainTransaction(txid="ab" * 32, type_code=type_code, index=0, **kwargs)


class TestClassify:
    """Test classify()."""

    def test_creation(self):
        """Type 8 with payload should be a creation."""
        payload = NewAssetPayload(name="GOLD", is_root=True)
        action = classify(_tx(8, new_asset=payload))

        assert isinstance(action, CreateAction)
        assert action.payload is payload

    def test_mint(self):
        """Type 10 with payload should be a mint."""
        action = classify(_tx(10, mint_asset=MintAssetPayload(asset_id="cd" * 32, amount=5)))

        assert isinstance(action, MintAction)

    def test_update(self):
        """Type 9 with payload should be an update."""
        action = classify(_tx(9, update_asset=UpdateAssetPayload(asset_id="cd" * 32)))

        assert isinstance(action, UpdateAction)

    def test_transfer(self):
        """Value transaction with asset outputs should be a transfer."""
        outputs = [
            TxOutput(n=0, address="RPlain"),
            TxOutput(n=1, address="RAsset", asset=OutputAsset("GOLD", "cd" * 32, 1)),
        ]
        action = classify(_tx(0, outputs=outputs))

        assert isinstance(action, TransferAction)
        assert [o.n for o in action.outputs] == [1]

    @pytest.mark.parametrize("type_code", [0, 1, 2, 3, 4, 5, 6, 7])
    def test_value_types_without_assets(self, type_code):
        """Value transactions without asset outputs produce no records."""
        action = classify(_tx(type_code, outputs=[TxOutput(n=0, address="RPlain")]))

        assert isinstance(action, StandardAction)

    def test_marker_only_output_is_transfer(self):
        """A transfer-marked output without asset data is still a transfer."""
        action = classify(_tx(0, outputs=[TxOutput(n=0, script_type="transferasset")]))

        assert isinstance(action, TransferAction)

    def test_unknown_type_code(self):
        """Unrecognized codes should not raise."""
        action = classify(_tx(42))

        assert isinstance(action, UnknownAction)
        assert "42" in action.reason

    @pytest.mark.parametrize("type_code", [8, 9, 10])
    def test_asset_type_without_payload(self, type_code):
        """Asset types missing their payload are unknown, not fatal."""
        action = classify(_tx(type_code))

        assert isinstance(action, UnknownAction)
        assert "without" in action.reason

    def test_future(self):
        """Type 7 with a lock payload should be a future."""
        payload = FuturePayload(lock_output_index=0, maturity=10)
        outputs = [
            TxOutput(n=0, address="RHeir", value=5),
            TxOutput(n=1, address="RAsset", asset=OutputAsset("GOLD", "cd" * 32, 1)),
        ]
        action = classify(_tx(7, future=payload, outputs=outputs))

        assert isinstance(action, FutureAction)
        assert action.payload is payload
        assert [o.n for o in action.outputs] == [1]

    def test_future_type_without_payload_is_transfer(self):
        """Type 7 without a lock payload is handled like any value transaction."""
        outputs = [TxOutput(n=0, address="RAsset", asset=OutputAsset("GOLD", "cd" * 32, 1))]
        action = classify(_tx(7, outputs=outputs))

        assert isinstance(action, TransferAction)
