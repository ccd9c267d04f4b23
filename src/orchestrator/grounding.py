"""File Grounding Manager.

Keeps each assistant bound to exactly one grounding (vector) store and
makes uploaded files members of it.

Known gap: `ensure_grounding_store` is an unlocked read-then-write. Two
concurrent first-time calls for the same assistant can each create a
store; the assistant ends up referencing one and the other is orphaned.
Callers must not parallelize the first grounding call per assistant.
"""

from provider.client import ProviderGateway
from shared.logging import get_logger
from shared.models import GroundingResult, VectorStoreFile
from orchestrator.errors import GroundingError

logger = get_logger(__name__)

VECTOR_STORE_NAME_TEMPLATE = "vs_for_{assistant_id}"


class FileGroundingManager:
    """
    Manages the grounding store of an assistant.

    Responsibilities:
    - Create the assistant's single store lazily
    - Add files to the store, at most once each
    - List the files an assistant is grounded on
    """

    def __init__(self, provider: ProviderGateway) -> None:
        self.provider = provider

    async def ensure_grounding_store(self, assistant_id: str) -> str:
        """
        Return the assistant's grounding store id, creating it if missing.

        Idempotent for sequential calls: an assistant that already
        references a store gets that store back and nothing is created.
        """
        assistant = await self.provider.get_assistant(assistant_id)
        if assistant.vector_store_ids:
            vector_store_id = assistant.vector_store_ids[0]
            logger.debug(
                "Using existing grounding store",
                assistant_id=assistant_id,
                vector_store_id=vector_store_id
            )
            return vector_store_id

        vector_store_id = await self.provider.create_vector_store(
            VECTOR_STORE_NAME_TEMPLATE.format(assistant_id=assistant_id)
        )
        await self.provider.update_assistant_tool_resources(assistant_id, [vector_store_id])

        logger.info(
            "Grounding store created",
            assistant_id=assistant_id,
            vector_store_id=vector_store_id
        )
        return vector_store_id

    async def attach_file(self, assistant_id: str, file_id: str) -> GroundingResult:
        """
        Ground the assistant on an uploaded file.

        Membership is checked first, so attaching the same file twice is
        a no-op the second time.

        Raises:
            GroundingError: If the store cannot be created or the file added
        """
        if not assistant_id or not file_id:
            raise GroundingError("Assistant ID and file ID are required")

        try:
            vector_store_id = await self.ensure_grounding_store(assistant_id)

            members = await self.provider.list_vector_store_files(vector_store_id)
            if any(member.id == file_id for member in members):
                logger.info(
                    "File already grounded",
                    assistant_id=assistant_id,
                    file_id=file_id,
                    vector_store_id=vector_store_id
                )
            else:
                await self.provider.add_file_to_vector_store(vector_store_id, file_id)
                logger.info(
                    "File grounded",
                    assistant_id=assistant_id,
                    file_id=file_id,
                    vector_store_id=vector_store_id
                )
        except GroundingError:
            raise
        except Exception as e:
            logger.error(
                "Grounding failed",
                assistant_id=assistant_id,
                file_id=file_id,
                error=str(e)
            )
            raise GroundingError(
                f"Failed to attach file {file_id} to assistant {assistant_id}: {e}"
            ) from e

        return GroundingResult(
            assistant_id=assistant_id,
            file_id=file_id,
            vector_store_id=vector_store_id
        )

    async def list_grounded_files(self, assistant_id: str) -> list[VectorStoreFile]:
        """
        List files in every store the assistant references.

        Returns an empty list when the assistant has no store. A store
        that cannot be listed is logged and skipped.
        """
        assistant = await self.provider.get_assistant(assistant_id)
        if not assistant.vector_store_ids:
            logger.info("No grounding store for assistant", assistant_id=assistant_id)
            return []

        files: list[VectorStoreFile] = []
        for vector_store_id in assistant.vector_store_ids:
            try:
                files.extend(await self.provider.list_vector_store_files(vector_store_id))
            except Exception as e:
                logger.error(
                    "Failed to list grounding store",
                    vector_store_id=vector_store_id,
                    error=str(e)
                )

        logger.info("Grounded files listed", assistant_id=assistant_id, count=len(files))
        return files
