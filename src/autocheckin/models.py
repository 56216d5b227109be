"""Pydantic models for tasks, settings and portal responses.

All data structures use Pydantic v2 for validation, serialization, and type safety.
The persisted models keep the field names of the on-disk config.json.
"""

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
)


class Location(BaseModel):
    """Target coordinates, kept as decimal strings to avoid precision loss."""

    lat: str = ""
    lng: str = ""
    acc: str = "10.0"


class Task(BaseModel):
    """One scheduled check-in job for a course."""

    id: str = ""
    name: str
    time: str  # "HH:MM", local wall-clock time
    class_id: str
    cookie: str
    location: Location = Field(default_factory=Location)
    enable: bool = True


class WeComConfig(BaseModel):
    """WeCom (Enterprise WeChat) application credentials."""

    enable: bool = False
    corpid: str = ""
    secret: str = ""
    agentid: str = ""
    touser: str = "@all"


class GlobalConfig(BaseModel):
    wecom: WeComConfig = Field(default_factory=WeComConfig)
    debug: bool = False


class AppConfig(BaseModel):
    """Everything the configuration store persists."""

    model_config = ConfigDict(populate_by_name=True)

    tasks: list[Task] = Field(default_factory=list)
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")


class LoginSession(BaseModel):
    """Authenticated portal identity captured at login completion.

    Only valid against the portal host that issued the cookie.
    """

    model_config = ConfigDict(frozen=True)

    cookie: str
    class_id: str = ""
    class_ids: tuple[str, ...] = ()


class LoginStatus(BaseModel):
    """Response of the op=checklogin poll.

    Only the JSON integer 1 means the code was scanned. Other values, "1" and
    1.0 included, are kept as sent and read as still waiting.
    """

    status: StrictInt | StrictFloat | StrictStr | StrictBool | None = None
    url: str | None = None

    @property
    def completed(self) -> bool:
        return type(self.status) is int and self.status == 1


class SignOutcome(BaseModel):
    """Classified response of one sign-in submission."""

    ok: bool
    message: str


class CheckinResult(BaseModel):
    """What happened to one opportunity during a task run."""

    task: str
    sign_id: str
    ok: bool
    message: str
    lat: str
    lng: str
    notified: bool = False
