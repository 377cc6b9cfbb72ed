"""Orchestrator for the descriptor extraction pipeline.

Runs all phases in sequence:
  Phase 1: scan every buffer for embedded descriptors
  Phase 2: ingest them into the descriptor pool (first name wins)
  Phase 3: resolve and render each collected descriptor

Nothing is ingested before every buffer has been scanned, so imports can be
satisfied by files found in any input.
"""

from typing import Iterable, Mapping, Optional, Tuple, Union

from protodump.collector import DescriptorCollector
from protodump.config import DESCRIPTOR_PROTO_NAME, RunConfig
from protodump.errors import ProtodumpError, ResolutionError
from protodump.log import LogCallback, make_log_callback
from protodump.models import ExtractionResult, RenderedSchema
from protodump.pool import PoolBuilder
from protodump.printer import count_message_types, render_file
from protodump.scanner import MatchCallback

Inputs = Union[Mapping[str, bytes], Iterable[Tuple[str, bytes]]]


def run_extraction(inputs: Inputs, config: Optional[RunConfig] = None,
                   log_callback: Optional[LogCallback] = None,
                   on_match: Optional[MatchCallback] = None) -> ExtractionResult:
    """Run the complete pipeline, raising on the first fatal error.

    Args:
        inputs: (source, buffer) pairs or a mapping, scanned in order
        config: Run options (defaults to RunConfig())
        log_callback: Optional callback for log messages (level, message)
        on_match: Optional callback (source, offset, name, size) per descriptor

    Returns:
        ExtractionResult with every rendered file

    Raises:
        ProtodumpError: on a database, dependency or link failure
    """
    config = config or RunConfig()
    log = log_callback or make_log_callback()

    if isinstance(inputs, Mapping):
        inputs = inputs.items()

    # =========================================================================
    # Phase 1: scan
    # =========================================================================
    collector = DescriptorCollector(on_match=on_match, log_callback=log)
    for source, data in inputs:
        collector.add_buffer(source, data)

    log("info", f"{len(collector)} descriptors found")

    # =========================================================================
    # Phase 2: pool ingestion
    # =========================================================================
    builder = PoolBuilder(config, log_callback=log)
    stored = builder.ingest_all(collector)
    log("info", f"{stored} distinct files in descriptor database")

    # =========================================================================
    # Phase 3: resolution and rendering
    # =========================================================================
    outputs = []
    messages = 0
    for raw in collector:
        if raw.name == DESCRIPTOR_PROTO_NAME and not config.include_descriptor_proto:
            continue

        file_desc = builder.resolve(raw.name)
        try:
            text = render_file(file_desc)
        except KeyError as e:
            raise ResolutionError(f"Cannot render {raw.name}: {e} missing from pool") from e

        count = count_message_types(file_desc)
        outputs.append(RenderedSchema(name=raw.name, text=text, message_count=count))
        messages += count

    return ExtractionResult(
        success=True,
        descriptors_found=len(collector),
        files_rendered=len(outputs),
        messages_rendered=messages,
        outputs=outputs,
    )


def extract_schemas(inputs: Inputs, config: Optional[RunConfig] = None,
                    log_callback: Optional[LogCallback] = None,
                    on_match: Optional[MatchCallback] = None) -> ExtractionResult:
    """Run the pipeline and report a fatal error in the result.

    A failed run carries no outputs: a partial set of files is never
    returned.
    """
    log = log_callback or make_log_callback()
    try:
        return run_extraction(inputs, config, log_callback=log, on_match=on_match)
    except ProtodumpError as e:
        log("error", str(e))
        return ExtractionResult(success=False, error=str(e))
