"""Records extracted from the mailing-list archive."""

from __future__ import annotations

from pydantic import BaseModel, Field


class MailingList(BaseModel):
    """A mailing list as listed in the archive catalog."""

    name: str = Field(description="List identifier used in archive URLs")
    category: str = Field(default="", description="Catalog group the list belongs to")


class MessageStub(BaseModel):
    """A message's listing-row summary, without body or headers."""

    id: str = Field(description="Archive message ID")
    list: str = Field(description="Mailing list the message was requested from")
    subject: str = Field(default="", description="Subject as rendered in the listing")
    author: str = Field(default="", description="Author as rendered in the listing")
    date: str = Field(default="", description="Message date")


class MessageContent(MessageStub):
    """A full message: stub fields plus headers and plain-text body."""

    body: str = Field(default="", description="Plain-text message body")

    # Keys keep the case they had upstream.
    headers: dict[str, str] = Field(default_factory=dict, description="Message headers")

    def header(self, name: str, default: str | None = None) -> str | None:
        """Look up a header value ignoring the case of its name."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    def to_stub(self) -> MessageStub:
        return MessageStub(
            id=self.id,
            list=self.list,
            subject=self.subject,
            author=self.author,
            date=self.date,
        )
