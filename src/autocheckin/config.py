"""Runtime settings loaded from environment variables.

Portal endpoints are fixed by the portal's own deployment; they are settings
only so a changed host can be patched without a release.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class CheckinConfig(BaseSettings):
    """Check-in automation settings loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Attendance portal (no API - everything is scraped)
    portal_base_url: str = Field(
        default="http://k8n.cn",
        description="Portal base URL for course listing and sign-in pages",
    )
    uidlogin_url: str = Field(
        default="https://bj.k8n.cn/student/uidlogin",
        description="Login completion URL that issues the session cookie",
    )

    # QR login
    login_qr_url: str = Field(
        default="https://login.b8n.cn/qr/weixin/student/2",
        description="Login entry page, also polled with op=checklogin",
    )
    login_deeplink_url: str = Field(
        default="http://login.b8n.cn/weixin/login/student/2",
        description="Deep link encoded into the scannable code",
    )
    login_host: str = Field(
        default="login.b8n.cn",
        description="Host marker identifying the login script block",
    )
    login_poll_interval_seconds: float = Field(
        default=2.0,
        description="Delay between status polls while waiting for a scan",
    )
    login_timeout_seconds: int = Field(
        default=300,
        description="Give up waiting for a scan after this many seconds",
    )

    # WeCom notifications
    wecom_api_url: str = Field(
        default="https://qyapi.weixin.qq.com/cgi-bin",
        description="WeCom API root for gettoken and message/send",
    )

    # Paths
    config_path: str = Field(
        default="data/config.json",
        description="JSON file holding tasks and notification settings",
    )

    # Scheduling / HTTP
    tick_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between scheduler ticks",
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for every outbound HTTP request",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton pattern
_config: CheckinConfig | None = None


def get_config() -> CheckinConfig:
    """Get the check-in configuration singleton.

    Returns:
        CheckinConfig: Settings instance
    """
    global _config
    if _config is None:
        _config = CheckinConfig()
    return _config
