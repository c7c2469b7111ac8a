# novtl/cli.py
import logging
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from novtl.cancellation import CancellationToken
from novtl.context.glossary import load_glossary
from novtl.factory import build_pipeline
from novtl.pipeline import PipelineResult, TranslationMode, TranslationRequest, translate_batch
from novtl.reconstructor import Reconstructor
from novtl.router.config_loader import ConfigError, load_config
from novtl.router.errors import TranslationError, UserAbortedError


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

# Extensiones soportadas
_SUPPORTED_FORMATS = {".txt", ".md"}

_MODES = [m.value for m in TranslationMode]


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="novtl")
@click.option("--verbose", "-v", is_flag=True, help="Muestra logs de depuración.")
def main(verbose: bool):
    """
    novtl: traductor de novelas por capítulos con LLMs.

    Divide el capítulo en chunks, respeta el glosario del proyecto
    y muestra la traducción en streaming mientras se genera.
    """
    logging.basicConfig(
        level  = logging.DEBUG if verbose else logging.WARNING,
        format = "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _common_options(func):
    """Opciones compartidas por translate y batch."""
    options = [
        click.option("--to", "target_lang", default=None, metavar="LANG",
                     help="Idioma destino (por defecto: el de la config)"),
        click.option("--style", default=None,
                     help="Instrucción de estilo (por defecto: la de la config)"),
        click.option("--mode", default=None, type=click.Choice(_MODES, case_sensitive=False),
                     help="standard: una pasada | two_pass: borrador + pulido (doble coste)"),
        click.option("--glossary", "-g", default=None, type=click.Path(exists=False),
                     help="Glosario YAML (lista de original/translated)"),
        click.option("--provider", "-p", default=None,
                     help="Proveedor de la config a usar (gemini, claude, openai, deepseek, grok)"),
        click.option("--config", "config_path", default=None, type=click.Path(exists=False),
                     help="Ruta alternativa a config.yaml"),
        click.option("--quiet", "-q", is_flag=True,
                     help="No muestra el streaming en pantalla"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


# ------------------------------------------------------------------
# novtl translate
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--input", "-i", "input_path",
    required = True,
    type     = click.Path(exists=False),   # validamos nosotros para mejor mensaje
    help     = "Capítulo a traducir (.txt, .md)",
)
@click.option(
    "--previous",
    default = None,
    type    = click.Path(exists=False),
    help    = "Traducción del capítulo anterior, para continuidad",
)
@click.option(
    "--output", "-o",
    default = None,
    type    = click.Path(exists=False),
    help    = "Archivo de salida (por defecto: <capitulo>_<idioma>.txt)",
)
@_common_options
def translate(
    input_path:  str,
    previous:    Optional[str],
    output:      Optional[str],
    target_lang: Optional[str],
    style:       Optional[str],
    mode:        Optional[str],
    glossary:    Optional[str],
    provider:    Optional[str],
    config_path: Optional[str],
    quiet:       bool,
):
    """Traduce un capítulo mostrando el resultado en streaming."""

    # ── Validaciones de entrada ───────────────────────────────────
    source_path = _validate_file(input_path)
    previous_tail = _read_text(_validate_file(previous)) if previous else None
    entries = _load_glossary(glossary)

    # ── Ensamblar pipeline ────────────────────────────────────────
    config, pipeline = _build(config_path, provider)
    settings = config.translation
    target = target_lang or settings.target_language
    _validate_lang(target, "--to")

    token = CancellationToken()
    request = TranslationRequest(
        source_text           = _read_text(source_path),
        target_language       = target,
        style_instruction     = style or settings.style_instruction,
        glossary              = entries,
        mode                  = _resolve_mode(mode, settings.mode),
        previous_chapter_tail = previous_tail,
        cancel_token          = token,
    )

    reconstructor = Reconstructor()
    output_path = Path(output) if output else reconstructor.output_path_for(source_path, target)

    # ── Ejecutar ──────────────────────────────────────────────────
    try:
        with _cancel_on_sigint(token):
            result = pipeline.run(request, _sink(quiet))

    except UserAbortedError:
        _handle_aborted()
        return

    except TranslationError as e:
        _handle_failure(e, reconstructor, output_path)
        sys.exit(2)

    except Exception as e:
        _error(f"Error inesperado: {type(e).__name__}: {e}")
        sys.exit(1)

    reconstructor.write(result.text, output_path)
    _print_summary(result, output_path, quiet)


# ------------------------------------------------------------------
# novtl batch
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--input", "-i", "input_paths",
    required = True,
    multiple = True,
    type     = click.Path(exists=False),
    help     = "Capítulos en orden de lectura (repetible)",
)
@click.option(
    "--output-dir", "-d",
    default = None,
    type    = click.Path(file_okay=False),
    help    = "Carpeta de salida (por defecto: junto a cada capítulo)",
)
@_common_options
def batch(
    input_paths: tuple[str, ...],
    output_dir:  Optional[str],
    target_lang: Optional[str],
    style:       Optional[str],
    mode:        Optional[str],
    glossary:    Optional[str],
    provider:    Optional[str],
    config_path: Optional[str],
    quiet:       bool,
):
    """
    Traduce varios capítulos en secuencia.
    La cola de cada traducción da continuidad al capítulo siguiente.
    """
    paths   = [_validate_file(p) for p in input_paths]
    entries = _load_glossary(glossary)

    config, pipeline = _build(config_path, provider)
    settings = config.translation
    target = target_lang or settings.target_language
    _validate_lang(target, "--to")

    token = CancellationToken()
    translation_mode = _resolve_mode(mode, settings.mode)
    reconstructor = Reconstructor(Path(output_dir) if output_dir else None)

    def make_request(source_text: str, previous_tail: Optional[str]) -> TranslationRequest:
        return TranslationRequest(
            source_text           = source_text,
            target_language       = target,
            style_instruction     = style or settings.style_instruction,
            glossary              = entries,
            mode                  = translation_mode,
            previous_chapter_tail = previous_tail,
            cancel_token          = token,
        )

    # number indexa la lista original, incluidos los capítulos vacíos omitidos
    texts = [_read_text(p) for p in paths]

    def on_chapter_done(number: int, result: PipelineResult) -> None:
        path = reconstructor.write(result.text, reconstructor.output_path_for(paths[number], target))
        if not quiet:
            click.echo("")
        click.echo(f"[novtl] ✓ {paths[number].name} → {path} ({result.total_chunks} chunks)")

    try:
        with _cancel_on_sigint(token):
            results = translate_batch(
                pipeline,
                texts,
                make_request,
                on_chunk        = _sink(quiet),
                on_chapter_done = on_chapter_done,
            )

    except UserAbortedError:
        _handle_aborted()
        return

    except TranslationError as e:
        _error(f"{e.user_message}\n[novtl]   Detalle: {e}")
        sys.exit(2)

    except Exception as e:
        _error(f"Error inesperado: {type(e).__name__}: {e}")
        sys.exit(1)

    click.echo("─" * 50)
    click.echo(f"[novtl] ✓ Lote completado: {len(results)} capítulos")


# ------------------------------------------------------------------
# Helpers de ensamblado
# ------------------------------------------------------------------

def _build(config_path: Optional[str], provider: Optional[str]):
    try:
        config   = load_config(config_path)
        pipeline = build_pipeline(config=config, provider=provider)
    except (FileNotFoundError, ConfigError, ValueError) as e:
        _abort(str(e))
    return config, pipeline


def _load_glossary(path: Optional[str]) -> list:
    if not path:
        return []
    try:
        return load_glossary(path)
    except (FileNotFoundError, ValueError) as e:
        _abort(str(e))


def _sink(quiet: bool):
    if quiet:
        return lambda _: None
    return lambda delta: click.echo(delta, nl=False)


@contextmanager
def _cancel_on_sigint(token: CancellationToken):
    """
    Ctrl+C cancela el token en vez de matar el proceso a mitad de stream.
    Un segundo Ctrl+C sí interrumpe de inmediato.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        if token.cancelled:
            raise KeyboardInterrupt
        token.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_file(path: str) -> Path:
    """Verifica existencia y formato del archivo."""
    p = Path(path)

    if not p.exists():
        _abort(f"Archivo no encontrado: {path}")

    if not p.is_file():
        _abort(f"La ruta no es un archivo: {path}")

    if p.suffix.lower() not in _SUPPORTED_FORMATS:
        supported = ", ".join(sorted(_SUPPORTED_FORMATS))
        _abort(
            f"Formato no soportado: '{p.suffix}'\n"
            f"Formatos disponibles: {supported}"
        )
    return p


def _validate_lang(name: str, option: str) -> None:
    """El destino es un nombre libre ("Indonesian", "pt-BR"), pero no vacío ni absurdo."""
    name = name.strip()

    if not name:
        _abort(f"{option} no puede estar vacío.")

    if len(name) > 40:
        _abort(f"{option}: idioma demasiado largo: '{name}'")


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _resolve_mode(option: Optional[str], configured: str) -> TranslationMode:
    try:
        return TranslationMode((option or configured).lower())
    except ValueError:
        _abort(f"Modo desconocido: '{option or configured}'. Usa: {', '.join(_MODES)}")


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _handle_aborted() -> None:
    """Cancelar no es un error: sin rojo, sin código de fallo."""
    click.echo("\n[novtl] Proceso detenido por el usuario.")


def _handle_failure(error: TranslationError, reconstructor: Reconstructor, output_path: Path) -> None:
    chunk = "?" if error.chunk_index is None else error.chunk_index + 1
    _error(
        f"{error.user_message}\n"
        f"[novtl]   Chunk  : {chunk}\n"
        f"[novtl]   Detalle: {error}"
    )
    saved = reconstructor.write_partial(error.partial_text, output_path, error.chunk_index)
    if saved:
        click.echo(f"[novtl]   Parcial guardado en: {saved}", err=True)


def _print_summary(result: PipelineResult, output_path: Path, quiet: bool) -> None:
    """Imprime el resumen final del pipeline."""
    retried = sum(1 for a in result.attempts if a > (2 if result.mode is TranslationMode.TWO_PASS else 1))

    if not quiet:
        click.echo("")
    click.echo("─" * 50)
    click.echo("[novtl] ✓ Traducción completada")
    click.echo(f"[novtl]   Chunks  : {result.total_chunks}")
    click.echo(f"[novtl]   Modo    : {result.mode.value}")
    if retried:
        click.echo(click.style(f"[novtl]   Con reintentos: {retried}", fg="yellow"))
    click.echo(f"[novtl]   Output  : {output_path}")
    click.echo("─" * 50)


def _abort(message: str) -> None:
    """Error de validación: culpa del usuario."""
    click.echo(click.style(f"[novtl] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema: no es culpa del usuario."""
    click.echo(click.style(f"[novtl] {message}", fg="red"), err=True)
