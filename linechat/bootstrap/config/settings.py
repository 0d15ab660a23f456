from typing import Annotated

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from linechat.bootstrap.config.loader import get_configfile
from linechat.core.models.config import ClientConfig


class ServerSettings(BaseModel):
    host: Annotated[
        str,
        Field(
            description="Host name or IP address of the chat server.",
            default="127.0.0.1"
        )
    ]

    port: Annotated[
        int,
        Field(
            description="TCP port of the chat server.",
            default=5000,
            ge=1,
            le=65535,
        )
    ]


class IdentitySettings(BaseModel):
    username: Annotated[
        str,
        Field(
            description=(
                "Name announced to the server in the handshake.\n"
                "Other users see it as the author of your messages and use it\n"
                "to address private messages to you. It must not contain '|'."
            ),
            min_length=1,
        )
    ]

    avatar: Annotated[
        str,
        Field(
            description=(
                "Avatar reference announced in the handshake.\n"
                "The server relays it verbatim with every message you send."
            ),
            default="/images/profile0.jpeg"
        )
    ]

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username must not be blank")
        if "|" in v:
            raise ValueError("username must not contain '|'")
        return v


class ConnectionSettings(BaseModel):
    probe_timeout_ms: Annotated[
        int,
        Field(
            description="Timeout of the reachability probe run before connecting.",
            default=1500,
            gt=0,
        )
    ]

    encoding: Annotated[
        str,
        Field(
            description="Text encoding of protocol lines.",
            default="utf-8"
        )
    ]

    max_line_length: Annotated[
        int,
        Field(
            description="Longest line accepted from the server, in bytes.",
            default=64 * 1024,
            gt=0,
        )
    ]

    close_timeout: Annotated[
        float,
        Field(
            description="Maximum time allowed for the receive loop to stop on disconnect.",
            default=2.0,
            gt=0,
        )
    ]

    default_avatar: Annotated[
        str,
        Field(
            description="Avatar shown when the server sends none, and for server notices.",
            default="/images/profile0.jpeg"
        )
    ]


class LineChatConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LINECHAT_",
        env_nested_delimiter="__",
        extra="ignore"
    )

    server: Annotated[
        ServerSettings,
        Field(
            description="Endpoint of the chat server to join.",
            default_factory=ServerSettings
        )
    ]

    identity: Annotated[
        IdentitySettings,
        Field(
            description=(
                "Who you are on the server.\n"
                "Sent once as the handshake line right after connecting."
            )
        )
    ]

    connection: Annotated[
        ConnectionSettings,
        Field(
            description="Timeouts and limits of the session connection.",
            default_factory=ConnectionSettings
        )
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=get_configfile()),
        )

    def get_client_config(self) -> ClientConfig:
        connection = self.connection
        return ClientConfig(
            probe_timeout_ms=connection.probe_timeout_ms,
            encoding=connection.encoding,
            max_line_length=connection.max_line_length,
            close_timeout=connection.close_timeout,
            default_avatar=connection.default_avatar,
        )
