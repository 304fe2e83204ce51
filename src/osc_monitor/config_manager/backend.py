# config_manager/backend.py
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BackendConfig(BaseModel):
    """Grafana datasource proxy settings for the log and metric stores."""

    model_config = ConfigDict(extra="forbid")

    grafana_url: str = Field("https://ops-ui.osaas.io", alias="grafana_url")
    grafana_token: str = Field("", alias="grafana_token")
    loki_uid: str = Field(
        "ce673d8c-9728-44c7-8c78-8c10df447caa",
        alias="loki_uid",
        description="Grafana datasource uid of the Loki log store.",
    )
    prom_uid: str = Field(
        "dbc6c44d-10b7-4ba1-b18a-af74de200791",
        alias="prom_uid",
        description="Grafana datasource uid of the Prometheus metric store.",
    )
    timeout_sec: float = Field(15.0, alias="timeout_sec", gt=0)

    @field_validator("grafana_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def loki_base(self) -> str:
        return f"{self.grafana_url}/api/datasources/proxy/uid/{self.loki_uid}/loki/api/v1"

    @property
    def prom_base(self) -> str:
        return f"{self.grafana_url}/api/datasources/proxy/uid/{self.prom_uid}/api/v1"

    @property
    def auth_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.grafana_token}",
            "Content-Type": "application/json",
        }
