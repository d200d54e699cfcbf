"""Re-extraction of one memo followed by full reconciliation."""

from loguru import logger

from memosync.derived.collections import DerivedCollections
from memosync.errors import GatewayError, ReanalysisInProgressError
from memosync.gateway.base import MemoGateway


class ReanalysisCoordinator:
    """
    Runs the backend's extraction on one memo and reconciles afterwards.

    The extractor may add, remove or rewrite any number of derived records,
    so on success all three collections are refetched and replaced. On
    failure nothing changes and the backend's message propagates verbatim.
    """

    def __init__(self, gateway: MemoGateway, derived: DerivedCollections):
        self.gateway = gateway
        self.derived = derived
        self._running: set[int] = set()

    def is_running(self, memo_id: int) -> bool:
        return memo_id in self._running

    async def reanalyze(self, memo_id: int, content: str) -> str:
        """
        Reanalyze a memo with its current body text.

        Returns:
            The backend's success message.

        Raises:
            ReanalysisInProgressError: The same memo is already being reanalyzed.
            GatewayError: The call failed or the backend reported failure.
        """
        if memo_id in self._running:
            raise ReanalysisInProgressError(f"Memo {memo_id} is already being reanalyzed")

        self._running.add(memo_id)
        try:
            logger.info(f"Reanalyzing memo {memo_id}")
            result = await self.gateway.reanalyze_memo(memo_id, content)
            if not result.success:
                raise GatewayError(result.message, command="reanalyze_memo")
            await self.derived.refresh_all()
        finally:
            self._running.discard(memo_id)

        logger.info(f"Reanalysis of memo {memo_id} done: {result.message}")
        return result.message
