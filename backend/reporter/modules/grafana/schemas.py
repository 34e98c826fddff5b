from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class GrafanaSchema(BaseModel):
    """
    Schema base para o JSON de dashboards do Grafana.

    As chaves sao comparadas sem diferenciar maiusculas/minusculas
    ("Title", "title" e "TITLE" preenchem o mesmo campo) e campos
    desconhecidos sao ignorados.
    """

    model_config = ConfigDict(extra='ignore', populate_by_name=True, frozen=True)

    @model_validator(mode='before')
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        names: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            names[name.lower()] = name
            if field.alias:
                names[field.alias.lower()] = name
        return {names.get(str(key).lower(), key): value for key, value in data.items()}

    @field_validator('*', mode='before')
    @classmethod
    def _null_as_default(cls, value: Any, info) -> Any:
        # Grafana envia null em varios campos opcionais
        if value is None:
            field = cls.model_fields[info.field_name]
            return field.get_default(call_default_factory=True)
        return value


class GridPosSchema(GrafanaSchema):
    """Posicao do painel no grid de 24 colunas (Grafana v5+)."""

    h: float = 0
    w: float = 0
    x: float = 0
    y: float = 0


class PanelSchema(GrafanaSchema):
    """Painel como aparece no JSON do dashboard."""

    id: int = 0
    type: str = ''
    title: str = ''
    grid_pos: GridPosSchema = Field(default_factory=GridPosSchema, alias='gridPos')


class RowSchema(GrafanaSchema):
    """Linha com paineis aninhados (Grafana v4 e anteriores)."""

    id: int = 0
    title: str = ''
    show_title: bool = Field(default=False, alias='showTitle')
    panels: list[PanelSchema] = Field(default_factory=list)


class DashboardSchema(GrafanaSchema):
    """Definicao do dashboard."""

    title: str = ''
    description: str = ''
    rows: list[RowSchema] = Field(default_factory=list)
    panels: list[PanelSchema] = Field(default_factory=list)


class MetaSchema(GrafanaSchema):
    """Metadados retornados junto com o dashboard."""

    slug: str = ''


class DashboardEnvelopeSchema(GrafanaSchema):
    """Resposta de /api/dashboards/db/<slug> ou /api/dashboards/uid/<uid>."""

    dashboard: DashboardSchema = Field(default_factory=DashboardSchema)
    meta: MetaSchema = Field(default_factory=MetaSchema)
