"""Gmail tools — list, read, attachments, labels, modify, and send."""

from __future__ import annotations

import asyncio
import base64
import logging
from email.mime.text import MIMEText
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any, Literal

from bs4 import BeautifulSoup
from pydantic import Field

from src import runtime
from src.audit import AuditEntry
from src.integrations.google_auth import get_auth
from src.tools.base import ToolParams, ToolResult
from src.tools.guarded import guarded, record_audit
from src.tools.registry import registry

if TYPE_CHECKING:
    from src.audit import AuditLogger
    from src.guardrails import GuardrailContext

logger = logging.getLogger(__name__)

_CATEGORY = "google_gmail"
_SERVICE = "gmail"

_LIST_HEADERS = ["From", "To", "Subject", "Date"]


def _auth():  # noqa: ANN202
    return get_auth()


def _guardrails() -> GuardrailContext:
    return runtime.get_guardrails()


def _audit() -> AuditLogger:
    return runtime.get_audit_logger()


def _extract_headers(msg: dict) -> dict[str, str]:
    """Extract headers from a Gmail message into a flat dict keyed by lower-case name."""
    return {
        h["name"].lower(): h["value"]
        for h in msg.get("payload", {}).get("headers", [])
    }


def _parse_email_date(value: str) -> str:
    """RFC 2822 ``Date`` header to ISO 8601; unparseable values pass through."""
    try:
        return parsedate_to_datetime(value).isoformat()
    except (TypeError, ValueError):
        return value


def _decode(data: str) -> str:
    return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")


def _html_to_text(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text(separator="\n").strip()


def _collect_bodies(payload: dict) -> tuple[str, str]:
    """First text/plain and first text/html body anywhere in the MIME tree."""
    parts = payload.get("parts", [])
    if not parts:
        data = payload.get("body", {}).get("data", "")
        if not data or payload.get("filename"):
            return "", ""
        mime = payload.get("mimeType", "")
        if mime == "text/plain":
            return _decode(data), ""
        if mime == "text/html":
            return "", _decode(data)
        return "", ""

    plain = ""
    html = ""
    for part in parts:
        part_plain, part_html = _collect_bodies(part)
        plain = plain or part_plain
        html = html or part_html
    return plain, html


def _extract_body(payload: dict) -> dict[str, str]:
    """Best text body (plus raw HTML when present); plain text wins over HTML."""
    if not payload.get("parts") and payload.get("mimeType") not in ("text/plain", "text/html"):
        # Gmail omits mimeType on some single-part bodies; treat them as plain text
        data = payload.get("body", {}).get("data", "")
        return {"body": _decode(data) if data else ""}

    plain, html = _collect_bodies(payload)

    result: dict[str, str] = {}
    if plain:
        result["body"] = plain
    elif html:
        result["body"] = _html_to_text(html)
    else:
        result["body"] = ""
    if html:
        result["body_html"] = html
    return result


def _extract_attachments(payload: dict) -> list[dict[str, Any]]:
    """List attachments anywhere in the MIME tree."""
    attachments = []
    for part in payload.get("parts", []):
        body = part.get("body", {})
        if part.get("filename") and body.get("attachmentId"):
            attachments.append({
                "filename": part["filename"],
                "mime_type": part.get("mimeType", "application/octet-stream"),
                "size": body.get("size", 0),
                "attachment_id": body["attachmentId"],
            })
        attachments.extend(_extract_attachments(part))
    return attachments


def _find_attachment_part(payload: dict, attachment_id: str) -> dict | None:
    for part in payload.get("parts", []):
        if part.get("body", {}).get("attachmentId") == attachment_id:
            return part
        found = _find_attachment_part(part, attachment_id)
        if found is not None:
            return found
    return None


def _describe_label_change(add: list[str], remove: list[str]) -> str:
    """Human-readable audit title, e.g. ``Archive + Label: Receipts``."""
    actions = []
    if "INBOX" in remove:
        actions.append("Archive")
    if "TRASH" in add:
        actions.append("Trash")
    added = [lbl for lbl in add if lbl != "TRASH"]
    if added:
        actions.append(f"Label: {', '.join(added)}")
    removed = [lbl for lbl in remove if lbl != "INBOX"]
    if removed:
        actions.append(f"Unlabel: {', '.join(removed)}")
    return " + ".join(actions) or "Modify message"


# -- gmail_list_messages -----------------------------------------------------


class ListMessagesParams(ToolParams):
    query: str | None = Field(
        default=None,
        description=(
            "Gmail search query (same syntax as the Gmail search bar), "
            "e.g. 'is:unread' or 'from:sender@example.com'"
        ),
    )
    label_ids: list[str] | None = Field(
        default=None, description="Filter by label IDs (e.g. ['INBOX', 'UNREAD'])"
    )
    max_results: int = Field(default=20, ge=1, le=100, description="Max messages to return")


@registry.tool(
    name="gmail_list_messages",
    description=(
        "Search and list email messages. Returns metadata (from, subject, date, "
        "snippet); use gmail_get_message for the full body."
    ),
    category=_CATEGORY,
    params_model=ListMessagesParams,
)
@guarded
async def list_messages(
    query: str | None = None,
    label_ids: list[str] | None = None,
    max_results: int = 20,
) -> ToolResult:
    service = _auth().gmail()

    list_kwargs: dict[str, Any] = {"userId": "me", "maxResults": max_results}
    if query:
        list_kwargs["q"] = query
    if label_ids:
        list_kwargs["labelIds"] = label_ids

    result = await asyncio.to_thread(
        lambda: service.users().messages().list(**list_kwargs).execute()
    )

    messages = []
    for stub in result.get("messages", [])[:max_results]:
        msg = await asyncio.to_thread(
            lambda mid=stub["id"]: service.users()
            .messages()
            .get(userId="me", id=mid, format="metadata", metadataHeaders=_LIST_HEADERS)
            .execute()
        )
        headers = _extract_headers(msg)
        messages.append({
            "id": msg["id"],
            "thread_id": msg.get("threadId", ""),
            "snippet": msg.get("snippet", ""),
            "from": headers.get("from", ""),
            "to": headers.get("to", ""),
            "subject": headers.get("subject", ""),
            "date": _parse_email_date(headers.get("date", "")),
            "label_ids": msg.get("labelIds", []),
        })

    return ToolResult(data={
        "messages": messages,
        "count": len(messages),
        "result_size_estimate": result.get("resultSizeEstimate", 0),
    })


# -- gmail_get_message -------------------------------------------------------


class GetMessageParams(ToolParams):
    message_id: str = Field(description="Gmail message ID")
    format: Literal["full", "metadata", "minimal"] = Field(
        default="full",
        description="'full' includes body text and attachments, 'metadata' headers only",
    )


@registry.tool(
    name="gmail_get_message",
    description="Get the full content of a single email.",
    category=_CATEGORY,
    params_model=GetMessageParams,
)
@guarded
async def get_message(message_id: str, format: str = "full") -> ToolResult:  # noqa: A002
    service = _auth().gmail()

    msg = await asyncio.to_thread(
        lambda: service.users()
        .messages()
        .get(userId="me", id=message_id, format=format)
        .execute()
    )

    headers = _extract_headers(msg)
    data: dict[str, Any] = {
        "id": msg["id"],
        "thread_id": msg.get("threadId", ""),
        "from": headers.get("from", ""),
        "to": headers.get("to", ""),
        "cc": headers.get("cc", ""),
        "subject": headers.get("subject", ""),
        "date": _parse_email_date(headers.get("date", "")),
        "label_ids": msg.get("labelIds", []),
        "headers": {
            "message_id": headers.get("message-id", ""),
            "in_reply_to": headers.get("in-reply-to", ""),
            "list_unsubscribe": headers.get("list-unsubscribe", ""),
        },
    }
    if format == "full":
        payload = msg.get("payload", {})
        data.update(_extract_body(payload))
        data["attachments"] = _extract_attachments(payload)

    return ToolResult(data=data)


# -- gmail_get_attachment ----------------------------------------------------


class GetAttachmentParams(ToolParams):
    message_id: str = Field(description="Gmail message ID")
    attachment_id: str = Field(description="Attachment ID from gmail_get_message")


@registry.tool(
    name="gmail_get_attachment",
    description=(
        "Download an email attachment as base64url data. Oversized attachments "
        "and blocked file types are refused by policy."
    ),
    category=_CATEGORY,
    params_model=GetAttachmentParams,
)
@guarded
async def get_attachment(message_id: str, attachment_id: str) -> ToolResult:
    guardrails = _guardrails()
    service = _auth().gmail()

    # Look up the part first so type and size are checked before any download
    msg = await asyncio.to_thread(
        lambda: service.users()
        .messages()
        .get(userId="me", id=message_id, format="full")
        .execute()
    )

    part = _find_attachment_part(msg.get("payload", {}), attachment_id) or {}
    mime_type = part.get("mimeType") or "application/octet-stream"
    filename = part.get("filename") or "attachment"
    part_size = part.get("body", {}).get("size", 0)

    guardrails.check_attachment_type(mime_type)
    guardrails.check_attachment_size(part_size)

    attachment = await asyncio.to_thread(
        lambda: service.users()
        .messages()
        .attachments()
        .get(userId="me", messageId=message_id, id=attachment_id)
        .execute()
    )

    return ToolResult(data={
        "filename": filename,
        "mime_type": mime_type,
        "size": attachment.get("size", part_size),
        "data": attachment.get("data", ""),
    })


# -- gmail_modify_message ----------------------------------------------------


class ModifyMessageParams(ToolParams):
    message_id: str = Field(description="Gmail message ID")
    add_label_ids: list[str] | None = Field(
        default=None, description="Label IDs to add. Add 'TRASH' to trash."
    )
    remove_label_ids: list[str] | None = Field(
        default=None, description="Label IDs to remove. Remove 'INBOX' to archive."
    )


@registry.tool(
    name="gmail_modify_message",
    description=(
        "Add or remove labels on an email. Remove 'INBOX' to archive, "
        "add 'TRASH' to trash."
    ),
    category=_CATEGORY,
    params_model=ModifyMessageParams,
)
@guarded
async def modify_message(
    message_id: str,
    add_label_ids: list[str] | None = None,
    remove_label_ids: list[str] | None = None,
) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_mail_modify_limit(1)

    add = add_label_ids or []
    remove = remove_label_ids or []
    body: dict[str, Any] = {}
    if add:
        body["addLabelIds"] = add
    if remove:
        body["removeLabelIds"] = remove

    service = _auth().gmail()
    result = await asyncio.to_thread(
        lambda: service.users()
        .messages()
        .modify(userId="me", id=message_id, body=body)
        .execute()
    )

    guardrails.increment_mail_modify_counter(1)

    await record_audit(
        _audit(),
        AuditEntry(
            operation="update",
            service=_SERVICE,
            title=_describe_label_change(add, remove),
            remote_id=message_id,
            changes={"addLabelIds": add, "removeLabelIds": remove},
        ),
    )

    return ToolResult(data={
        "id": result.get("id", message_id),
        "label_ids": result.get("labelIds", []),
    })


# -- gmail_list_labels -------------------------------------------------------


@registry.tool(
    name="gmail_list_labels",
    description="List all Gmail labels (system and user-created).",
    category=_CATEGORY,
)
@guarded
async def list_labels() -> ToolResult:
    service = _auth().gmail()

    result = await asyncio.to_thread(
        lambda: service.users().labels().list(userId="me").execute()
    )

    labels = [
        {"id": label["id"], "name": label["name"], "type": label.get("type", "user")}
        for label in result.get("labels", [])
    ]
    # User labels first (alphabetical), then system
    labels.sort(key=lambda lbl: (lbl["type"] != "user", lbl["name"].lower()))

    return ToolResult(data={"labels": labels, "count": len(labels)})


# -- gmail_create_label ------------------------------------------------------


class CreateLabelParams(ToolParams):
    name: str = Field(description="Label name. Use '/' for nesting (e.g. 'Projects/Alpha')")
    label_list_visibility: Literal["labelShow", "labelShowIfUnread", "labelHide"] = Field(
        default="labelShow", description="Visibility in the Gmail label list"
    )


@registry.tool(
    name="gmail_create_label",
    description="Create a new Gmail label. Use '/' for nested labels (e.g. 'Work/Projects').",
    category=_CATEGORY,
    params_model=CreateLabelParams,
)
@guarded
async def create_label(name: str, label_list_visibility: str = "labelShow") -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(1)

    label_body = {
        "name": name,
        "labelListVisibility": label_list_visibility,
        "messageListVisibility": "show",
    }

    service = _auth().gmail()
    result = await asyncio.to_thread(
        lambda: service.users().labels().create(userId="me", body=label_body).execute()
    )

    guardrails.increment_write_counter(1)

    await record_audit(
        _audit(),
        AuditEntry(
            operation="create",
            service=_SERVICE,
            title=f"Label: {name}",
            remote_id=result["id"],
        ),
    )

    return ToolResult(data={"id": result["id"], "name": result["name"]})


# -- gmail_send_message ------------------------------------------------------


class SendMessageParams(ToolParams):
    to: str = Field(description="Recipient email address")
    subject: str = Field(description="Email subject")
    body: str = Field(description="Email body (plain text)")
    cc: str | None = Field(default=None, description="CC recipients (comma-separated)")
    in_reply_to: str | None = Field(
        default=None, description="Message-ID header of the email being replied to"
    )
    thread_id: str | None = Field(
        default=None, description="Gmail thread ID to place a reply in the right thread"
    )
    require_approval: bool = Field(
        description="Must be true. Confirms the user explicitly approved sending this email.",
    )


@registry.tool(
    name="gmail_send_message",
    description=(
        "Send an email (new or reply). require_approval must be true, "
        "confirming the user approved this exact email."
    ),
    category=_CATEGORY,
    params_model=SendMessageParams,
)
@guarded
async def send_message(
    to: str,
    subject: str,
    body: str,
    require_approval: bool,
    cc: str | None = None,
    in_reply_to: str | None = None,
    thread_id: str | None = None,
) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_send_approval(require_approval)
    guardrails.check_mail_send_limit(1)

    message = MIMEText(body, "plain", "utf-8")
    message["to"] = to
    message["subject"] = subject
    if cc:
        message["cc"] = cc
    if in_reply_to:
        message["In-Reply-To"] = in_reply_to
        message["References"] = in_reply_to

    send_body: dict[str, Any] = {"raw": base64.urlsafe_b64encode(message.as_bytes()).decode()}
    if thread_id:
        send_body["threadId"] = thread_id

    service = _auth().gmail()
    result = await asyncio.to_thread(
        lambda: service.users().messages().send(userId="me", body=send_body).execute()
    )

    guardrails.increment_mail_send_counter(1)
    logger.info("Sent email to %s: %s", to, result["id"])

    await record_audit(
        _audit(),
        AuditEntry(
            operation="create",
            service=_SERVICE,
            title=f"Send: {subject}",
            remote_id=result["id"],
            changes={"to": to, "subject": subject},
        ),
    )

    return ToolResult(data={"id": result["id"], "thread_id": result.get("threadId", "")})
