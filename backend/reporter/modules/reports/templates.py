"""
Templates LaTeX padrao e leitura de templates nomeados.

Os templates usam Jinja2 com delimitadores proprios para nao colidir com a
sintaxe do LaTeX:
    [[ variavel ]]     expressoes
    [% if ... %]       blocos
    [# comentario #]   comentarios
"""

import logging
import re
from pathlib import Path

from reporter.shared.exceptions import TemplateNotFoundError

logger = logging.getLogger(__name__)

TEMPLATE_EXTENSION = '.tex'

_TEMPLATE_NAME_RE = re.compile(r'[A-Za-z0-9_.-]+')

DEFAULT_TEMPLATE = r"""[# Template padrao: uma imagem por linha, singlestats lado a lado #]
\documentclass{article}
\usepackage{graphicx}
\usepackage[margin=1in]{geometry}

\graphicspath{ {images/} }
\begin{document}
\title{[[ title ]][% if variable_values %] \\ \large [[ variable_values ]][% endif %][% if description %] \\ \small [[ description ]][% endif %]}
\date{[[ from_formatted ]]\\to\\[[ to_formatted ]]}
\maketitle
\begin{center}
[% for panel in panels %]
[% if panel.is_single_stat %]
\begin{minipage}{0.3\textwidth}
\includegraphics[width=\textwidth]{[[ panel.image_name ]]}
\end{minipage}
[% else %]
\par
\vspace{0.5cm}
\includegraphics[width=\textwidth]{[[ panel.image_name ]]}
\par
\vspace{0.5cm}
[% endif %]
[% endfor %]

\end{center}
\end{document}
"""

GRID_TEMPLATE = r"""[# Template em grid: a largura de cada imagem segue o gridPos do painel #]
\documentclass{article}
\usepackage{graphicx}
\usepackage[margin=0.5in]{geometry}

\graphicspath{ {images/} }
\begin{document}
\title{[[ title ]][% if variable_values %] \\ \large [[ variable_values ]][% endif %][% if description %] \\ \small [[ description ]][% endif %]}
\date{[[ from_formatted ]]\\to\\[[ to_formatted ]]}
\maketitle
\begin{center}
[% for panel in panels %]
[% if panel.is_partial_width %]
\begin{minipage}{[[ panel.width ]]\textwidth}
\includegraphics[width=\textwidth]{[[ panel.image_name ]]}
\end{minipage}
[% else %]
\par
\vspace{0.5cm}
\includegraphics[width=\textwidth]{[[ panel.image_name ]]}
\par
\vspace{0.5cm}
[% endif %]
[% endfor %]

\end{center}
\end{document}
"""


def default_template(grid_layout: bool = False) -> str:
    return GRID_TEMPLATE if grid_layout else DEFAULT_TEMPLATE


def load_named_template(templates_dir: str | Path, name: str) -> str:
    """
    Le o template <templates_dir>/<name>.tex.

    Raises:
        TemplateNotFoundError: Nome invalido ou arquivo inexistente/ilegivel.
    """
    if not _TEMPLATE_NAME_RE.fullmatch(name) or '..' in name:
        raise TemplateNotFoundError(name)

    path = Path(templates_dir) / f'{name}{TEMPLATE_EXTENSION}'
    logger.info('Usando template %s', path)
    try:
        return path.read_text(encoding='utf-8')
    except OSError as exc:
        logger.error('Erro ao ler template %s: %s', path, exc)
        raise TemplateNotFoundError(name) from exc
