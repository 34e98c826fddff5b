"""
Linha de comando do grafana-reporter.

Uso:
  grafana-reporter serve
  grafana-reporter generate --dashboard <uid> --out report.pdf --from now-1d/d --to now-1d/d

As opcoes globais (--grafana-url, --templates, ...) sobrescrevem as
variaveis de ambiente / .env.
"""

import argparse
import shutil
import sys
from collections.abc import Sequence
from typing import Any

from reporter import __version__
from reporter.config import Settings, settings
from reporter.modules.grafana.client import GrafanaApiVersion
from reporter.modules.grafana.timerange import TimeRange
from reporter.modules.reports.service import ReportService
from reporter.shared.exceptions import ReporterError
from reporter.shared.logging import dashboard_id_var, get_logger, setup_logging

logger = get_logger(__name__)


def parse_variables(items: Sequence[str] | None) -> dict[str, list[str]]:
    """
    Converte ["host=a", "host=b", "var-env=prod"] em variaveis do Grafana.

    O prefixo "var-" e adicionado quando ausente.
    """
    variables: dict[str, list[str]] = {}
    for item in items or []:
        key, sep, value = item.partition('=')
        if not sep or not key:
            raise argparse.ArgumentTypeError(
                f'Variavel invalida "{item}", use nome=valor'
            )
        if not key.startswith('var-'):
            key = f'var-{key}'
        variables.setdefault(key, []).append(value)
    return variables


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='grafana-reporter',
        description='Gera relatorios PDF a partir de dashboards do Grafana',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--grafana-url', help='URL do Grafana (ex: http://localhost:3000)')
    parser.add_argument('--templates', help='Diretorio dos templates .tex')
    parser.add_argument(
        '--ssl-check',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Verifica o certificado TLS do Grafana',
    )
    parser.add_argument(
        '--grid-layout',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Dimensiona as imagens pelo gridPos dos paineis',
    )
    parser.add_argument('--workers', type=int, help='Downloads de paineis em paralelo')

    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Inicia o servidor HTTP')
    serve.add_argument('--host', help='Endereco de escuta')
    serve.add_argument('--port', type=int, help='Porta de escuta')

    generate = subparsers.add_parser('generate', help='Gera um relatorio em arquivo')
    generate.add_argument('--dashboard', required=True, help='uid (v5) ou slug (v4)')
    generate.add_argument('--out', required=True, help='Arquivo PDF de saida')
    generate.add_argument('--from', dest='from_spec', default='', help='Inicio (ex: now-1h)')
    generate.add_argument('--to', dest='to_spec', default='', help='Fim (ex: now)')
    generate.add_argument('--timezone', default='', help='Timezone IANA dos limites')
    generate.add_argument('--template', default='', help='Nome do template (sem .tex)')
    generate.add_argument('--api-key', default='', help='Token da API do Grafana')
    generate.add_argument(
        '--api-version',
        choices=[version.value for version in GrafanaApiVersion],
        help='Versao da API do Grafana',
    )
    generate.add_argument(
        '--var',
        action='append',
        default=[],
        metavar='NOME=VALOR',
        help='Variavel do dashboard (pode repetir)',
    )
    return parser


def settings_from_args(args: argparse.Namespace, base: Settings = settings) -> Settings:
    """Aplica as opcoes da linha de comando sobre as configuracoes."""
    overrides: dict[str, Any] = {
        'grafana_url': args.grafana_url,
        'templates_dir': args.templates,
        'ssl_check': args.ssl_check,
        'grid_layout': args.grid_layout,
        'panel_fetch_workers': args.workers,
        'host': getattr(args, 'host', None),
        'port': getattr(args, 'port', None),
    }
    return base.model_copy(
        update={key: value for key, value in overrides.items() if value is not None}
    )


def run_serve(config: Settings) -> int:
    import uvicorn

    # O app e as dependencies leem a instancia global de configuracoes
    for name in Settings.model_fields:
        setattr(settings, name, getattr(config, name))

    from reporter.main import app

    uvicorn.run(app, host=config.host, port=config.port)
    return 0


def run_generate(args: argparse.Namespace, config: Settings) -> int:
    """Gera o relatorio e copia o PDF para --out."""
    dashboard_id_var.set(args.dashboard)
    try:
        variables = parse_variables(args.var)
        time_range = TimeRange(args.from_spec, args.to_spec, args.timezone)
        service = ReportService(config)
        report = service.new_report(
            dashboard_id=args.dashboard,
            time_range=time_range,
            api_token=args.api_key,
            api_version=args.api_version,
            template_name=args.template,
            variables=variables,
        )
    except argparse.ArgumentTypeError as exc:
        print(f'Erro: {exc}', file=sys.stderr)
        return 2
    except ReporterError as exc:
        print(f'Erro: {exc.message}', file=sys.stderr)
        return 1

    with report:
        try:
            pdf_path = report.generate()
            shutil.copyfile(pdf_path, args.out)
        except ReporterError as exc:
            print(f'Erro ao gerar relatorio: {exc.message}', file=sys.stderr)
            return 1
        except OSError as exc:
            print(f'Erro ao gravar {args.out}: {exc}', file=sys.stderr)
            return 1

    print(f'Relatorio "{report.title}" gravado em {args.out}')
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = settings_from_args(args)
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
    )

    if config.panel_fetch_workers < 1:
        print('Erro: --workers precisa ser maior que zero', file=sys.stderr)
        return 2

    if args.command == 'serve':
        return run_serve(config)
    return run_generate(args, config)


if __name__ == '__main__':
    sys.exit(main())
