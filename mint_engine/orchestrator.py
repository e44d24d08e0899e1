"""Per-token mint finalization and the block-scan pass driver."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .chain.contract import ChainClient, MintRequest
from .chain.cursor import BlockCursor
from .errors import ChainError, InvalidTransitionError, ValidationError
from .imaging.postprocess import ImagePostProcessor
from .metadata import build_metadata, write_metadata_file
from .providers.base import Auto, GenerationRequest, ProviderSelection, selection_from_name
from .providers.router import AttemptListener, ProviderRouter
from .runs.events import EventWriter, emit
from .runs.tasks import TaskRegistry, TaskStatus
from .storage.uploader import StorageUploader
from .traits.engine import TraitEngine, build_prompt
from .utils import new_id, now_utc_iso


class MintState(str, Enum):
    REQUESTED = "requested"
    PLACEHOLDER_SET = "placeholder_set"
    GENERATING = "generating"
    UPLOADING = "uploading"
    FINALIZED = "finalized"
    FAILED = "failed"


@dataclass
class MintOutcome:
    token_id: int
    task_id: str
    state: MintState
    failed_in: MintState | None = None
    token_uri: str | None = None
    image_url: str | None = None
    tx_hash: str | None = None
    provider: str | None = None
    tier: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is MintState.FINALIZED


class MintOrchestrator:
    def __init__(
        self,
        *,
        chain: ChainClient,
        cursor: BlockCursor,
        tasks: TaskRegistry,
        traits: TraitEngine,
        router: ProviderRouter,
        postprocessor: ImagePostProcessor,
        uploader: StorageUploader,
        placeholder_uri: str,
        selection: ProviderSelection | None = None,
        events: EventWriter | None = None,
    ) -> None:
        self.chain = chain
        self.cursor = cursor
        self.tasks = tasks
        self.traits = traits
        self.router = router
        self.postprocessor = postprocessor
        self.uploader = uploader
        self.placeholder_uri = placeholder_uri
        self.selection = selection or Auto()
        self.events = events

    def run_pass(self) -> dict[str, Any]:
        pass_id = new_id("pass")
        emit(self.events, "pass_started", id=pass_id, last_block=self.cursor.last_processed_block)
        latest = self.cursor.latest_block()
        window = self.cursor.pending_range(latest)
        summary: dict[str, Any] = {
            "passId": pass_id,
            "timestamp": now_utc_iso(),
            "fromBlock": None,
            "toBlock": None,
            "blocksScanned": 0,
            "newEventsFound": 0,
            "tasksCreated": 0,
            "tasksCompleted": 0,
            "tasksFailed": 0,
            "skipped": 0,
            "lastProcessedBlock": self.cursor.last_processed_block,
            "results": [],
        }
        if window is None:
            emit(self.events, "pass_finished", id=pass_id, reason="up_to_date")
            return summary

        from_block, to_block = window
        requests = self.cursor.scan(from_block, to_block)
        summary.update(
            fromBlock=from_block,
            toBlock=to_block,
            blocksScanned=to_block - from_block + 1,
            newEventsFound=len(requests),
        )
        dispatched: set[int] = set()
        for request in requests:
            if request.token_id in dispatched or self.cursor.is_processed(request.token_id):
                summary["skipped"] += 1
                emit(self.events, "token_skipped", token_id=request.token_id, block=request.block_number)
                continue
            dispatched.add(request.token_id)
            outcome = self.finalize(request)
            summary["tasksCreated"] += 1
            summary["tasksCompleted" if outcome.ok else "tasksFailed"] += 1
            summary["results"].append(_outcome_payload(outcome))

        checkpoint = self.cursor.advance(to_block)
        summary["lastProcessedBlock"] = checkpoint.last_processed_block
        emit(
            self.events,
            "pass_finished",
            id=pass_id,
            completed=summary["tasksCompleted"],
            failed=summary["tasksFailed"],
            skipped=summary["skipped"],
            last_block=checkpoint.last_processed_block,
        )
        return summary

    def redrive(
        self,
        token_id: int,
        breed: str,
        *,
        buyer: str | None = None,
        provider: str | None = None,
        force: bool = False,
    ) -> MintOutcome:
        """Re-run finalization for one token outside the block scan."""
        if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id < 0:
            raise ValidationError(f"Token id must be a non-negative integer, got {token_id!r}.")
        if self.cursor.is_processed(token_id) and not force:
            raise ValidationError(f"Token {token_id} is already finalized; pass force=True to regenerate.")
        request = MintRequest(token_id=token_id, buyer=buyer or "", breed=breed, block_number=0)
        selection = selection_from_name(provider) if provider else self.selection
        outcome = self.finalize(request, selection=selection, origin="redrive")
        if outcome.ok:
            self.cursor.advance(self.cursor.last_processed_block)
        return outcome

    def finalize(
        self,
        request: MintRequest,
        *,
        selection: ProviderSelection | None = None,
        origin: str = "scan",
    ) -> MintOutcome:
        selection = selection or self.selection
        token_id = request.token_id
        task_id = self.tasks.create(
            token_id,
            provider=getattr(selection, "provider", "auto"),
            meta={"block": request.block_number, "txHash": request.tx_hash, "origin": origin},
            breed=request.breed,
            buyer=request.buyer,
        )
        outcome = MintOutcome(token_id=token_id, task_id=task_id, state=MintState.REQUESTED)
        emit(self.events, "mint_started", token_id=token_id, task_id=task_id, breed=request.breed, origin=origin)
        self.tasks.update(
            task_id,
            status=TaskStatus.PROCESSING,
            progress=10,
            message=f"Processing mint request for token {token_id}",
        )
        try:
            self._ensure_placeholder(task_id, token_id)
            outcome.state = MintState.PLACEHOLDER_SET

            assignment = self.traits.assign_traits(request.breed, token_id)
            outcome.tier = assignment.tier
            self.tasks.update(
                task_id,
                progress=30,
                message=f"Traits assigned: {assignment.breed}, {assignment.tier} ({assignment.rarity_score})",
            )

            outcome.state = MintState.GENERATING
            generation = GenerationRequest(
                prompt=build_prompt(assignment),
                breed=assignment.breed,
                selection=selection,
            )
            image = self.router.generate(generation, listener=self._history_listener(task_id))
            outcome.provider = image.provider
            self.tasks.update(
                task_id,
                progress=60,
                provider=image.provider,
                message=f"Image generated by {image.provider} ({image.model})",
            )

            outcome.state = MintState.UPLOADING
            image_file = self.postprocessor.refine(image)
            image_upload = self.uploader.upload(image_file, f"ninjacat-{token_id}-image")
            outcome.image_url = image_upload.gateway_url
            self.tasks.update(task_id, progress=70, message=f"Image uploaded via {image_upload.tier}")
            document = build_metadata(token_id, assignment, image_upload.gateway_url, image)
            metadata_file = write_metadata_file(document, image_file.parent, token_id)
            metadata_upload = self.uploader.upload(metadata_file, f"ninjacat-{token_id}-metadata")
            outcome.token_uri = metadata_upload.gateway_url
            self.tasks.update(task_id, progress=85, message=f"Metadata uploaded via {metadata_upload.tier}")

            outcome.tx_hash = self._write_final_uri(token_id, metadata_upload.gateway_url)
            self.cursor.mark_processed(token_id)
            outcome.state = MintState.FINALIZED
            try:
                self.tasks.update(
                    task_id,
                    status=TaskStatus.COMPLETED,
                    progress=100,
                    message=f"Token {token_id} finalized",
                    result={
                        "tokenURI": outcome.token_uri,
                        "imageUrl": outcome.image_url,
                        "txHash": outcome.tx_hash,
                        "provider": image.provider,
                        "model": image.model,
                        "rarity": {"score": assignment.rarity_score, "tier": assignment.tier},
                    },
                )
            except InvalidTransitionError as transition:
                emit(self.events, "task_update_rejected", task_id=task_id, error=str(transition))
            emit(self.events, "mint_finalized", token_id=token_id, task_id=task_id, token_uri=outcome.token_uri)
        except Exception as exc:
            outcome.failed_in = outcome.state
            outcome.state = MintState.FAILED
            outcome.error = str(exc)
            emit(
                self.events,
                "mint_failed",
                token_id=token_id,
                task_id=task_id,
                stage=outcome.failed_in,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            try:
                self.tasks.update(
                    task_id,
                    status=TaskStatus.FAILED,
                    error_message=str(exc),
                    message=f"Failed while {outcome.failed_in.value}: {exc}",
                )
            except InvalidTransitionError as transition:
                emit(self.events, "task_update_rejected", task_id=task_id, error=str(transition))
        finally:
            self.postprocessor.cleanup()
        return outcome

    def _ensure_placeholder(self, task_id: str, token_id: int) -> None:
        try:
            current = self.chain.token_uri(token_id)
            if current:
                note = "Token URI already present; placeholder not written"
            else:
                self.chain.set_token_uri(token_id, self.placeholder_uri)
                note = "Placeholder URI set"
        except ChainError as exc:
            note = f"Placeholder step failed: {exc}"
            emit(self.events, "placeholder_failed", token_id=token_id, error=str(exc))
        self.tasks.update(task_id, progress=20, message=note)

    def _write_final_uri(self, token_id: int, uri: str) -> str | None:
        if self.chain.token_uri(token_id) == uri:
            emit(self.events, "final_uri_present", token_id=token_id, uri=uri)
            return None
        return self.chain.set_token_uri(token_id, uri)

    def _history_listener(self, task_id: str) -> AttemptListener:
        def listener(event: dict[str, Any]) -> None:
            provider = event.get("provider")
            attempt = event.get("attempt")
            if event["type"] == "attempt_failed":
                note = f"{provider} attempt {attempt} failed ({event.get('kind')}): {event.get('error')}"
            else:
                note = f"{provider} attempt {attempt} succeeded"
            self.tasks.update(task_id, message=note)

        return listener


def _outcome_payload(outcome: MintOutcome) -> dict[str, Any]:
    return {
        "tokenId": outcome.token_id,
        "taskId": outcome.task_id,
        "state": outcome.state.value,
        "failedIn": outcome.failed_in.value if outcome.failed_in else None,
        "tokenURI": outcome.token_uri,
        "imageUrl": outcome.image_url,
        "txHash": outcome.tx_hash,
        "provider": outcome.provider,
        "tier": outcome.tier,
        "error": outcome.error,
    }
