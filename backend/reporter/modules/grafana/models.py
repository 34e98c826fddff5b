import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from pydantic import ValidationError

from reporter.modules.grafana.schemas import (
    DashboardEnvelopeSchema,
    GridPosSchema,
    PanelSchema,
)

logger = logging.getLogger(__name__)

# Largura total do grid do Grafana v5 (em colunas)
GRID_COLUMNS = 24

# Fracao da largura de texto do LaTeX por unidade de grid
_GRID_UNIT_FRACTION = 0.04

_ROW_PANEL_TYPE = 'row'
_SINGLE_STAT_TYPE = 'singlestat'
_TEXT_TYPE = 'text'

# A barra invertida precisa ser a primeira substituicao
_LATEX_REPLACEMENTS: tuple[tuple[str, str], ...] = (
    ('\\', '\\textbackslash '),
    ('&', '\\&'),
    ('%', '\\%'),
    ('$', '\\$'),
    ('#', '\\#'),
    ('_', '\\_'),
    ('{', '\\{'),
    ('}', '\\}'),
    ('~', '\\textasciitilde '),
    ('^', '\\textasciicircum '),
)


def sanitize_latex(text: str) -> str:
    """Escapa os caracteres especiais do LaTeX."""
    for char, replacement in _LATEX_REPLACEMENTS:
        text = text.replace(char, replacement)
    return text


class DashboardLayout(str, Enum):
    """Formato do JSON decodificado."""

    ROWS = 'rows'  # Grafana v4: paineis aninhados em linhas
    FLAT = 'flat'  # Grafana v5+: lista plana com marcadores de linha


@dataclass(frozen=True)
class GridPos:
    h: float = 0
    w: float = 0
    x: float = 0
    y: float = 0


@dataclass(frozen=True)
class Panel:
    """
    Painel de um dashboard.

    Attributes:
        id: Identificador do painel (usado no nome da imagem e no render).
        type: Tipo do painel (graph, singlestat, text, ...).
        title: Titulo ja escapado para LaTeX.
        grid_pos: Posicao no grid (so preenchida no Grafana v5+).
    """

    id: int
    type: str = ''
    title: str = ''
    grid_pos: GridPos = field(default_factory=GridPos)

    @property
    def is_single_stat(self) -> bool:
        return self.type == _SINGLE_STAT_TYPE

    @property
    def is_text(self) -> bool:
        return self.type == _TEXT_TYPE

    @property
    def is_partial_width(self) -> bool:
        """Painel ocupa menos que a largura total do grid."""
        return self.grid_pos.w < GRID_COLUMNS

    @property
    def width(self) -> float:
        """Largura como fracao de \\textwidth."""
        return round(self.grid_pos.w * _GRID_UNIT_FRACTION, 4)

    @property
    def height(self) -> float:
        return round(self.grid_pos.h * _GRID_UNIT_FRACTION, 4)

    @property
    def image_name(self) -> str:
        """Nome da imagem sem extensao, como referenciado no LaTeX."""
        return f'image{self.id}'


@dataclass(frozen=True)
class Row:
    id: int
    title: str = ''
    show_title: bool = False
    panels: tuple[Panel, ...] = ()

    @property
    def is_visible(self) -> bool:
        return self.show_title


@dataclass(frozen=True)
class Dashboard:
    """
    Dashboard pronto para o relatorio.

    Textos ja escapados para LaTeX. `panels` segue a ordem do dashboard e
    nunca contem marcadores de linha; `rows` so e preenchido no layout ROWS.
    """

    title: str
    description: str = ''
    variable_values: str = ''
    variables: Mapping[str, str] = field(default_factory=dict)
    layout: DashboardLayout = DashboardLayout.FLAT
    rows: tuple[Row, ...] = ()
    panels: tuple[Panel, ...] = ()


# ---------------------------------------------------------------------------
# Decodificacao
# ---------------------------------------------------------------------------

def _variable_values(variables: Mapping[str, Sequence[str]]) -> str:
    return ', '.join(', '.join(values) for values in variables.values())


def _variables_map(variables: Mapping[str, Sequence[str]]) -> dict[str, str]:
    return {
        sanitize_latex(key): sanitize_latex(', '.join(values))
        for key, values in variables.items()
    }


def _build_panel(schema: PanelSchema) -> Panel:
    grid: GridPosSchema = schema.grid_pos
    return Panel(
        id=schema.id,
        type=schema.type,
        title=sanitize_latex(schema.title),
        grid_pos=GridPos(h=grid.h, w=grid.w, x=grid.x, y=grid.y),
    )


def build_dashboard(
    envelope: DashboardEnvelopeSchema,
    variables: Mapping[str, Sequence[str]] | None = None,
) -> Dashboard:
    """
    Converte o JSON validado do Grafana no modelo do relatorio.

    O layout e decidido uma unica vez: se houver `rows`, os paineis vem das
    linhas (v4); senao vem da lista plana, sem os marcadores de linha (v5).
    """
    variables = variables or {}
    source = envelope.dashboard

    rows: list[Row] = []
    panels: list[Panel] = []
    if source.rows:
        layout = DashboardLayout.ROWS
        for row_schema in source.rows:
            row_panels = tuple(_build_panel(p) for p in row_schema.panels)
            panels.extend(row_panels)
            rows.append(Row(
                id=row_schema.id,
                title=sanitize_latex(row_schema.title),
                show_title=row_schema.show_title,
                panels=row_panels,
            ))
    else:
        layout = DashboardLayout.FLAT
        panels = [
            _build_panel(p) for p in source.panels
            if p.type != _ROW_PANEL_TYPE
        ]

    dashboard = Dashboard(
        title=sanitize_latex(source.title),
        description=sanitize_latex(source.description),
        variable_values=sanitize_latex(_variable_values(variables)),
        variables=_variables_map(variables),
        layout=layout,
        rows=tuple(rows),
        panels=tuple(panels),
    )
    logger.debug(
        'Dashboard "%s" decodificado: layout=%s, %d painel(is)',
        dashboard.title, layout.value, len(dashboard.panels),
    )
    return dashboard


def decode_dashboard(
    payload: bytes | str,
    variables: Mapping[str, Sequence[str]] | None = None,
) -> Dashboard:
    """
    Decodifica o JSON bruto retornado pela API de dashboards.

    Raises:
        ValueError: Se o payload nao for um JSON de dashboard valido.
    """
    try:
        envelope = DashboardEnvelopeSchema.model_validate_json(payload)
    except ValidationError as exc:
        raise ValueError(f'JSON de dashboard invalido: {exc}') from exc
    return build_dashboard(envelope, variables)
