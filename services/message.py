from dataclasses import dataclass, field


@dataclass
class Attachment:
    """An image payload carried by a ReplyUnit."""
    data: bytes
    media_type: str = "image/jpeg"
    name: str = "image.jpg"
    url: str = ""  # where the bytes were fetched from (may be empty)


@dataclass
class NormalizedMessage:
    """Platform-agnostic inbound message handed to the resolver pipeline."""
    platform: str       # e.g. "napcat", "telegram"
    instance_id: str    # key as defined in the config file
    channel: dict       # platform-specific channel address
    user: str           # display name of sender
    user_id: str        # platform user ID
    text: str           # concatenated plain-text content
    message_id: str = ""  # platform message ID, used for quoting


@dataclass
class ReplyUnit:
    """One sendable message.

    A unit is plain text, a single image, or a composite of text plus images.
    ``forward`` asks the driver for a collapsed forwarded bundle instead of a
    regular inline message; ``quote_id`` quotes the triggering message.
    """
    text: str = ""
    images: list[Attachment] = field(default_factory=list)
    forward: bool = False
    quote_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.images
