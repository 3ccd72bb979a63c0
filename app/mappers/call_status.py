from app.schemas.calls import CallStatus, CallStatusInput, MappedCallStatus

COMPLETION_KEYWORDS = ("done", "completed", "ended", "finished", "successful")

# Keys inside the provider metadata that carry the carrier-level status.
PROVIDER_STATUS_KEYS = ("twilio_status",)


def _provider_status(metadata: dict | None) -> str:
    if not metadata:
        return ""
    for key in PROVIDER_STATUS_KEYS:
        value = metadata.get(key)
        if isinstance(value, str) and value:
            return value.lower()
    return ""


def _failure_reason(status: str, provider_status: str) -> CallStatus:
    if (
        "no-answer" in status
        or "no_answer" in status
        or "no-answer" in provider_status
        or "no_answer" in provider_status
    ):
        return CallStatus.no_answer
    if "busy" in status or "busy" in provider_status:
        return CallStatus.busy
    if "cancel" in status:
        return CallStatus.cancelled
    return CallStatus.failed


def map_call_status(
    call_status: CallStatusInput, has_transcript: bool = False
) -> MappedCallStatus:
    """Map the provider's call status onto the internal ``CallStatus``.

    Precedence:
      1. A completion keyword in the status, an explicit success flag, or a
         fetched transcript means ``completed``. A transcript outranks any
         other signal: if we got content, the call happened.
      2. An explicit failure flag or a status containing "fail" is broken
         down into no_answer / busy / cancelled / failed, always with an
         error message.
      3. Otherwise the flag is absent or ambiguous: ``completed`` with a
         transcript, ``failed`` without.
    """
    status = (call_status.status or "").lower()
    successful = call_status.call_successful

    if (
        any(keyword in status for keyword in COMPLETION_KEYWORDS)
        or successful == "success"
        or successful is True
        or has_transcript
    ):
        return MappedCallStatus(db_status=CallStatus.completed)

    if successful == "failed" or successful is False or "fail" in status:
        reason = _failure_reason(status, _provider_status(call_status.metadata))
        message = call_status.error_message or f"Call {reason.value.replace('_', ' ')}"
        return MappedCallStatus(db_status=reason, error_message=message)

    return MappedCallStatus(
        db_status=CallStatus.completed if has_transcript else CallStatus.failed
    )
