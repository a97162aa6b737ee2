"""Integration tests for the transaction lifecycle of mutating operations."""
from __future__ import annotations

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from confidential_engine.config import ChainConfig, ChainConfigStore, EngineConfig
from confidential_engine.errors import (
    EngineNotInitializedError,
    FaucetError,
    OperationInProgressError,
)
from confidential_engine.models import FaucetResult, TransactionResult
from confidential_engine.services.balances import BalanceReconciler
from confidential_engine.services.orchestrator import TransactionOrchestrator
from confidential_engine.services.session import Session

RECIPIENT_ADDRESS = "0x3333333333333333333333333333333333333333"
TOKEN_ADDRESS = "0x78Cf24370174180738C5B8E352B6D14c83a6c9A9"


@pytest.fixture()
def reconciler() -> MagicMock:
    return MagicMock(spec=BalanceReconciler)


@pytest.fixture()
def orchestrator(
    session: Session,
    config_store: ChainConfigStore,
    sample_engine_config: EngineConfig,
    reconciler: MagicMock,
    protocol_client: AsyncMock,
    funding: AsyncMock,
) -> TransactionOrchestrator:
    return TransactionOrchestrator(
        session,
        config_store,
        sample_engine_config,
        reconciler,
        get_client=lambda: protocol_client,
        funding=funding,
    )


class TestDeposit:
    @pytest.mark.asyncio
    async def test_success_records_hash_and_schedules_refresh(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
        reconciler: MagicMock,
    ) -> None:
        session.error = "stale error"

        result = await orchestrator.confidential_deposit("0.25")

        assert result == TransactionResult(hash="0xdeposit")
        assert session.last_tx_hash == "0xdeposit"
        assert session.error is None
        assert session.loading is False
        protocol_client.confidential_deposit.assert_awaited_once_with(
            session.signer, TOKEN_ADDRESS, 25
        )
        reconciler.schedule.assert_called_once_with(2.0)

    @pytest.mark.asyncio
    async def test_failure_sets_error_and_reraises(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
        reconciler: MagicMock,
    ) -> None:
        original = RuntimeError("insufficient funds for gas * price + value")
        protocol_client.confidential_deposit.side_effect = original

        with pytest.raises(RuntimeError) as exc_info:
            await orchestrator.confidential_deposit("1")

        assert exc_info.value is original
        assert session.error == "Insufficient funds for gas or transaction."
        assert session.loading is False
        assert session.last_tx_hash is None
        reconciler.schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_busy_during_call(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
    ) -> None:
        observed: list[bool] = []

        async def deposit(signer, token, amount):
            observed.append(session.loading)
            return "0xplain"

        protocol_client.confidential_deposit.side_effect = deposit

        result = await orchestrator.confidential_deposit("1")

        assert observed == [True]
        assert result.hash == "0xplain"

    @pytest.mark.asyncio
    async def test_invalid_amount_is_normalized(
        self, orchestrator: TransactionOrchestrator, session: Session
    ) -> None:
        with pytest.raises(ValueError):
            await orchestrator.confidential_deposit("1.234")

        assert session.error is not None
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
        reconciler: MagicMock,
    ) -> None:
        with pytest.raises(ValueError, match="must not be negative"):
            await orchestrator.confidential_deposit("-1")

        protocol_client.confidential_deposit.assert_not_awaited()
        assert session.error == "Amount must not be negative: '-1'"
        assert session.loading is False
        reconciler.schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_negative_transfer_and_withdraw_rejected(
        self, orchestrator: TransactionOrchestrator, protocol_client: AsyncMock
    ) -> None:
        with pytest.raises(ValueError):
            await orchestrator.confidential_transfer(RECIPIENT_ADDRESS, "-0.5")
        with pytest.raises(ValueError):
            await orchestrator.withdraw("-2")

        protocol_client.confidential_transfer.assert_not_awaited()
        protocol_client.withdraw.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_receipt_without_hash_fails(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
    ) -> None:
        protocol_client.confidential_deposit.return_value = {"status": 1}

        with pytest.raises(ValueError, match="no hash"):
            await orchestrator.confidential_deposit("1")

        assert session.error == "Transaction receipt has no hash"


class TestTransferAndWithdraw:
    @pytest.mark.asyncio
    async def test_transfer_converts_amount(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
    ) -> None:
        result = await orchestrator.confidential_transfer(RECIPIENT_ADDRESS, "1.5")

        assert result.hash == "0xtransfer"
        protocol_client.confidential_transfer.assert_awaited_once_with(
            session.signer, RECIPIENT_ADDRESS, TOKEN_ADDRESS, 150
        )

    @pytest.mark.asyncio
    async def test_transfer_rejects_bad_recipient(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
    ) -> None:
        with pytest.raises(ValueError, match="Invalid recipient"):
            await orchestrator.confidential_transfer("not-an-address", "1")

        assert session.error == "Invalid recipient address: not-an-address"
        protocol_client.confidential_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_withdraw(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
        reconciler: MagicMock,
    ) -> None:
        result = await orchestrator.withdraw("0.5")

        assert result.hash == "0xwithdraw"
        assert session.last_tx_hash == "0xwithdraw"
        protocol_client.withdraw.assert_awaited_once_with(session.signer, TOKEN_ADDRESS, 50)
        reconciler.schedule.assert_called_once_with(2.0)

    @pytest.mark.asyncio
    async def test_withdraw_rejected_by_user(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
    ) -> None:
        protocol_client.withdraw.side_effect = RuntimeError("ACTION_REJECTED")

        with pytest.raises(RuntimeError):
            await orchestrator.withdraw("0.5")

        assert session.error == "User rejected the request."


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_signer_on_other_chain(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
        funding: AsyncMock,
    ) -> None:
        session.signer = replace(session.signer, chain_id=84532)

        with pytest.raises(EngineNotInitializedError, match="chain 84532"):
            await orchestrator.confidential_deposit("1")
        with pytest.raises(EngineNotInitializedError, match="chain 84532"):
            await orchestrator.request_faucet()

        protocol_client.confidential_deposit.assert_not_awaited()
        funding.request.assert_not_awaited()
        assert session.error is None

    @pytest.mark.asyncio
    async def test_missing_token_address(
        self,
        session: Session,
        sample_chain_config: ChainConfig,
        sample_engine_config: EngineConfig,
        reconciler: MagicMock,
        protocol_client: AsyncMock,
    ) -> None:
        store = ChainConfigStore(replace(sample_chain_config, token_address=""))
        orchestrator = TransactionOrchestrator(
            session, store, sample_engine_config, reconciler, get_client=lambda: protocol_client
        )

        with pytest.raises(EngineNotInitializedError, match="Token address"):
            await orchestrator.withdraw("1")

        protocol_client.withdraw.assert_not_awaited()
        assert session.error is None

    @pytest.mark.asyncio
    async def test_missing_client(
        self,
        session: Session,
        config_store: ChainConfigStore,
        sample_engine_config: EngineConfig,
        reconciler: MagicMock,
    ) -> None:
        orchestrator = TransactionOrchestrator(
            session, config_store, sample_engine_config, reconciler, get_client=lambda: None
        )

        for call in (
            orchestrator.confidential_deposit("1"),
            orchestrator.confidential_transfer(RECIPIENT_ADDRESS, "1"),
            orchestrator.withdraw("1"),
        ):
            with pytest.raises(EngineNotInitializedError):
                await call

        assert session.error is None
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_missing_signer(
        self,
        config_store: ChainConfigStore,
        sample_engine_config: EngineConfig,
        reconciler: MagicMock,
        protocol_client: AsyncMock,
        funding: AsyncMock,
    ) -> None:
        orchestrator = TransactionOrchestrator(
            Session(),
            config_store,
            sample_engine_config,
            reconciler,
            get_client=lambda: protocol_client,
            funding=funding,
        )

        with pytest.raises(EngineNotInitializedError):
            await orchestrator.withdraw("1")
        with pytest.raises(EngineNotInitializedError):
            await orchestrator.request_faucet()
        funding.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_operation_rejected_while_in_flight(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
    ) -> None:
        release = asyncio.Event()

        async def slow_deposit(signer, token, amount):
            await release.wait()
            return "0xslow"

        protocol_client.confidential_deposit.side_effect = slow_deposit

        first = asyncio.create_task(orchestrator.confidential_deposit("1"))
        await asyncio.sleep(0)
        assert orchestrator.in_flight is True

        with pytest.raises(OperationInProgressError):
            await orchestrator.withdraw("1")
        protocol_client.withdraw.assert_not_awaited()

        release.set()
        assert (await first).hash == "0xslow"
        assert orchestrator.in_flight is False
        assert session.last_tx_hash == "0xslow"

    @pytest.mark.asyncio
    async def test_result_not_recorded_after_signer_change(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        protocol_client: AsyncMock,
        reconciler: MagicMock,
    ) -> None:
        async def deposit_then_logout(signer, token, amount):
            session.reset()
            return "0xorphan"

        protocol_client.confidential_deposit.side_effect = deposit_then_logout

        result = await orchestrator.confidential_deposit("1")

        assert result.hash == "0xorphan"
        assert session.last_tx_hash is None
        reconciler.schedule.assert_not_called()


class TestFaucet:
    @pytest.mark.asyncio
    async def test_success_schedules_staggered_refreshes(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        funding: AsyncMock,
        reconciler: MagicMock,
    ) -> None:
        result = await orchestrator.request_faucet()

        assert result.hash == "0xfaucet"
        assert session.last_tx_hash == "0xfaucet"
        funding.request.assert_awaited_once_with(session.signer.address)
        assert [c.args for c in reconciler.schedule.call_args_list] == [(0.0,), (3.0,), (6.0,)]

    @pytest.mark.asyncio
    async def test_uses_first_of_multiple_hashes(
        self, orchestrator: TransactionOrchestrator, funding: AsyncMock
    ) -> None:
        funding.request.return_value = FaucetResult(success=True, hashes=("0xtoken", "0xgas"))

        result = await orchestrator.request_faucet()

        assert result.hash == "0xtoken"

    @pytest.mark.asyncio
    async def test_failure_surfaces_server_message(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        funding: AsyncMock,
        reconciler: MagicMock,
    ) -> None:
        funding.request.return_value = FaucetResult(success=False, error="Faucet is empty")

        with pytest.raises(FaucetError, match="Faucet is empty"):
            await orchestrator.request_faucet()

        assert session.error == "Faucet is empty"
        assert session.loading is False
        reconciler.schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_without_message(
        self,
        orchestrator: TransactionOrchestrator,
        session: Session,
        funding: AsyncMock,
    ) -> None:
        funding.request.return_value = FaucetResult(success=False)

        with pytest.raises(FaucetError):
            await orchestrator.request_faucet()

        assert session.error == "Faucet request failed"
