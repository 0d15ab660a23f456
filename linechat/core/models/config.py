from dataclasses import dataclass


@dataclass
class ClientConfig:
    """
    Static configuration for the chat core.

    Built by the bootstrap layer from the user settings; the core never
    reads settings files or the environment itself.
    """
    probe_timeout_ms: int = 1500
    """
    Upper bound for a reachability probe, in milliseconds.
    """

    encoding: str = "utf-8"
    """
    Text encoding of protocol lines in both directions.
    """

    max_line_length: int = 64 * 1024
    """
    Longest inbound line accepted. A longer line ends the session.
    """

    close_timeout: float = 2.0
    """
    Maximum time (in seconds) disconnect() waits for the receive task to
    observe the closed socket before cancelling it.
    """

    default_avatar: str = "/images/profile0.jpeg"
    """
    Avatar reference used when the server sends an empty one.
    """
