"""
Interpretacao das especificacoes de tempo do Grafana.

Formatos aceitos:
- relativo: "now", "now-1h", "now-2d", "now-3w", "now+5M", "now-1y"
- absoluto: milissegundos desde epoch, ex: "1463464226537"
- limite amigavel (boundary): qualquer um dos anteriores seguido de "/d",
  "/w", "/M" ou "/y". O mesmo texto resolve para instantes diferentes
  conforme o papel no intervalo:
      From: "now/d"    -> inicio de hoje
      To:   "now/d"    -> fim de hoje (meia-noite de amanha)
      To:   "now/w"    -> fim da semana (proximo domingo)
      To:   "now-1d/d" -> fim de ontem (inicio de hoje)
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from reporter.shared.exceptions import MalformedTimeSpecError

DEFAULT_FROM = 'now-1h'
DEFAULT_TO = 'now'

_RELATIVE_TIME_RE = re.compile(r'now([+-][0-9]+)([mhdwMy])')
_BOUNDARY_TIME_RE = re.compile(r'(.*?)/([dwMy])')
_ABSOLUTE_TIME_RE = re.compile(r'[+-]?[0-9]+')


class Boundary(str, Enum):
    """Papel de uma especificacao dentro do intervalo."""

    FROM = 'from'
    TO = 'to'


# ---------------------------------------------------------------------------
# Aritmetica de calendario
# ---------------------------------------------------------------------------

def _calendar_date(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    microsecond: int = 0,
    tz: tzinfo | None = None,
) -> datetime:
    """
    Monta uma data normalizando meses e dias fora do intervalo.

    Mes 13 vira janeiro do ano seguinte e 31 de fevereiro vira 2 ou 3 de
    marco, da mesma forma que o calendario "transborda" naturalmente.
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    first = datetime(year, month, 1, hour, minute, second, microsecond, tzinfo=tz)
    return first + timedelta(days=day - 1)


def _add_calendar(moment: datetime, years: int = 0, months: int = 0, days: int = 0) -> datetime:
    return _calendar_date(
        moment.year + years,
        moment.month + months,
        moment.day + days,
        moment.hour,
        moment.minute,
        moment.second,
        moment.microsecond,
        tz=moment.tzinfo,
    )


def _add_exact(moment: datetime, delta: timedelta) -> datetime:
    # Duracao exata: soma em UTC para nao sofrer com horario de verao
    return (moment.astimezone(UTC) + delta).astimezone(moment.tzinfo)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _parse_relative(match: re.Match, now: datetime) -> datetime:
    amount = int(match.group(1))
    unit = match.group(2)

    if unit == 'm':
        return _add_exact(now, timedelta(minutes=amount))
    if unit == 'h':
        return _add_exact(now, timedelta(hours=amount))
    if unit == 'd':
        return _add_calendar(now, days=amount)
    if unit == 'w':
        return _add_calendar(now, days=amount * 7)
    if unit == 'M':
        return _add_calendar(now, months=amount)
    return _add_calendar(now, years=amount)


def _parse_absolute(spec: str, now: datetime) -> datetime:
    millis = int(spec)
    # Trunca para segundos inteiros em direcao a zero
    seconds = abs(millis) // 1000
    if millis < 0:
        seconds = -seconds
    return datetime.fromtimestamp(seconds, tz=now.tzinfo)


def _parse_moment(spec: str, now: datetime) -> datetime | None:
    """Resolve um instante sem sufixo de limite, ou None se nao reconhecido."""
    if spec == 'now':
        return now
    relative = _RELATIVE_TIME_RE.fullmatch(spec)
    if relative:
        return _parse_relative(relative, now)
    if _ABSOLUTE_TIME_RE.fullmatch(spec):
        return _parse_absolute(spec, now)
    return None


def _round_to_boundary(moment: datetime, role: Boundary, unit: str) -> datetime:
    step = 1 if role is Boundary.TO else 0
    year, month, day = moment.year, moment.month, moment.day

    if unit == 'd':
        day += step
    elif unit == 'w':
        # Semana comeca no domingo (domingo = 0)
        weekday = (moment.weekday() + 1) % 7
        day += 7 - weekday if role is Boundary.TO else -weekday
    elif unit == 'M':
        day = 1
        month += step
    else:
        day = 1
        month = 1
        year += step

    return _calendar_date(year, month, day, tz=moment.tzinfo)


def resolve(spec: str, now: datetime, role: Boundary) -> datetime:
    """
    Converte uma especificacao de tempo em um instante absoluto.

    Args:
        spec: Texto da especificacao (ex: "now-1d/d").
        now: Instante de referencia. Se vier sem timezone, assume UTC.
        role: Papel no intervalo (inicio ou fim), relevante para limites.

    Returns:
        Instante resolvido, no timezone de `now`.

    Raises:
        MalformedTimeSpecError: Se o texto nao corresponder a nenhum formato.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    try:
        boundary = _BOUNDARY_TIME_RE.fullmatch(spec)
        if boundary is None:
            moment = _parse_moment(spec, now)
        else:
            moment = _parse_moment(boundary.group(1), now)
            if moment is not None:
                moment = _round_to_boundary(moment, role, boundary.group(2))
    except (OverflowError, ValueError, OSError) as exc:
        raise MalformedTimeSpecError(spec) from exc

    if moment is None:
        raise MalformedTimeSpecError(spec)
    return moment


def format_unix_date(moment: datetime) -> str:
    """Formata no estilo `date` do Unix: 'Wed Jan  6 16:34:32 UTC 2016'."""
    return (
        f'{moment:%a %b} {moment.day:>2} {moment:%H:%M:%S} '
        f'{moment.tzname()} {moment.year}'
    )


# ---------------------------------------------------------------------------
# TimeRange
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimeRange:
    """
    Intervalo de tempo de um relatorio, no formato textual do Grafana.

    Imutavel. Textos vazios assumem "now-1h" e "now". O timezone (nome
    IANA, ex: "America/Sao_Paulo") define onde caem os limites de dia,
    semana, mes e ano; vazio significa UTC.
    """

    from_spec: str = DEFAULT_FROM
    to_spec: str = DEFAULT_TO
    timezone: str = ''

    def __post_init__(self) -> None:
        if not self.from_spec:
            object.__setattr__(self, 'from_spec', DEFAULT_FROM)
        if not self.to_spec:
            object.__setattr__(self, 'to_spec', DEFAULT_TO)
        if self.timezone:
            try:
                ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise MalformedTimeSpecError(self.timezone) from exc

    @property
    def tz(self) -> tzinfo:
        """Timezone usado na resolucao."""
        return ZoneInfo(self.timezone) if self.timezone else UTC

    def _anchor(self, now: datetime | None) -> datetime:
        if now is None:
            return datetime.now(self.tz)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now.astimezone(self.tz)

    def resolve_from(self, now: datetime | None = None) -> datetime:
        """Resolve o inicio do intervalo."""
        return resolve(self.from_spec, self._anchor(now), Boundary.FROM)

    def resolve_to(self, now: datetime | None = None) -> datetime:
        """Resolve o fim do intervalo."""
        return resolve(self.to_spec, self._anchor(now), Boundary.TO)

    def validate(self, now: datetime | None = None) -> None:
        """Resolve as duas pontas para falhar cedo com textos invalidos."""
        anchor = self._anchor(now)
        self.resolve_from(anchor)
        self.resolve_to(anchor)

    def from_formatted(self, now: datetime | None = None) -> str:
        return format_unix_date(self.resolve_from(now))

    def to_formatted(self, now: datetime | None = None) -> str:
        return format_unix_date(self.resolve_to(now))

    def __str__(self) -> str:
        tz_part = f' ({self.timezone})' if self.timezone else ''
        return f'{self.from_spec} -> {self.to_spec}{tz_part}'
