"""
Pure output reconciliation for code cells.

Every function takes a cell and returns a new cell; the input is never
mutated. Non-code cells are returned unchanged.
"""
from typing import Any, Dict, List, Optional

from ..models import CodeCell, DisplayOutput, ErrorOutput, OutputExecution, StreamOutput, now_ms


def _is_code(cell) -> bool:
    return isinstance(cell, CodeCell)


def append_stream(cell, name: str, text: str):
    """Stream frames always append."""
    if not _is_code(cell):
        return cell
    output = StreamOutput(name=name, text=text)
    return cell.model_copy(update={"outputs": [*cell.outputs, output]})


def append_error(cell, ename: str, evalue: str, traceback: List[str]):
    if not _is_code(cell):
        return cell
    output = ErrorOutput(ename=ename, evalue=evalue, traceback=list(traceback))
    return cell.model_copy(update={"outputs": [*cell.outputs, output]})


def apply_display(cell, frame_type: str, data: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None):
    """
    Append a rich output, or replace the output sharing its display_id.

    update_display_data is stored as display_data. Replacement keeps the
    position of the existing output.
    """
    if not _is_code(cell):
        return cell

    output_type = "display_data" if frame_type == "update_display_data" else frame_type
    output = DisplayOutput(type=output_type, data=dict(data), metadata=dict(metadata or {}))

    display_id = output.display_id
    if display_id is not None:
        for index, existing in enumerate(cell.outputs):
            if isinstance(existing, DisplayOutput) and existing.display_id == display_id:
                outputs = list(cell.outputs)
                outputs[index] = output
                return cell.model_copy(update={"outputs": outputs})

    return cell.model_copy(update={"outputs": [*cell.outputs, output]})


def apply_reply(cell, exec_time_ms: float, status: str, exec_count: int, ended: Optional[float] = None):
    """Record execution bounds and the display count stamped for this reply."""
    if not _is_code(cell):
        return cell
    ended = now_ms() if ended is None else ended
    display = dict(cell.metadata.get("display") or {})
    display["execCount"] = exec_count
    return cell.model_copy(update={
        "metadata": {**cell.metadata, "display": display},
        "execution": OutputExecution(started=ended - exec_time_ms, ended=ended, status=status),
    })


def begin_execution(cell, started: Optional[float] = None):
    """Reset outputs for a fresh run."""
    if not _is_code(cell):
        return cell
    started = now_ms() if started is None else started
    return cell.model_copy(update={
        "outputs": [],
        "execution": OutputExecution(started=started, ended=started, status="ok"),
    })


def clear_outputs(cell):
    if not _is_code(cell):
        return cell
    return cell.model_copy(update={"outputs": [], "execution": None})


def clear_execution(cell):
    """Drop outputs, execution bounds and the stamped display count."""
    if not _is_code(cell):
        return cell
    display = dict(cell.metadata.get("display") or {})
    display.pop("execCount", None)
    return cell.model_copy(update={
        "outputs": [],
        "execution": None,
        "metadata": {**cell.metadata, "display": display},
    })
