"""CLI entry point for the SnapBooth media core."""

import logging
import typer
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import config
from .errors import SnapboothError
from .models import STYLES, BrandingSpec

app = typer.Typer(
    name="snapbooth",
    help="Photo booth media generation and event export",
    no_args_is_help=True
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"snapbooth version {__version__}")
        raise typer.Exit()


def _read_files(paths: List[Path]) -> List[bytes]:
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        typer.echo("❌ Missing input files:")
        for path in missing:
            typer.echo(f"   - {path}")
        raise typer.Exit(1)
    return [p.read_bytes() for p in paths]


def _write_output(output: Path, data: bytes) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    typer.echo(f"✅ Saved: {output} ({len(data) / 1024:.0f} KB)")


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """SnapBooth - branded photos, strips, GIFs and event archives."""
    pass


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    setup_logging(verbose)
    try:
        config.validate_storage_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    typer.echo(f"📸 SnapBooth API on http://{host}:{port}")
    typer.echo(f"   Storage: {config.storage_backend}")
    typer.echo(f"   Events: {config.events_file}")
    uvicorn.run(
        "snapbooth.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="debug" if verbose else "info",
    )


@app.command()
def styles() -> None:
    """List the AI restyle presets."""
    typer.echo("🎨 AI styles:")
    for style in STYLES.values():
        typer.echo(f"   {style.emoji} {style.key}: {style.name}")
        typer.echo(f"      model: {style.model}")
    typer.echo("\n   Use 'random' or 'surprise' to pick one at random.")


@app.command()
def single(
    photo: Path = typer.Argument(..., help="Captured photo"),
    output: Path = typer.Option(Path("output/photo.jpg"), "--output", "-o", help="Output JPEG path"),
    overlay: str = typer.Option("", "--overlay", help="Text for the top band"),
    footer: str = typer.Option("", "--footer", help="Text for the footer band"),
    show_date: bool = typer.Option(False, "--show-date", help="Stamp today's date in the footer"),
    color: str = typer.Option("#1a1a2e", "--color", help="Footer band colour"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Resize and brand one photo locally, without storage."""
    from .editor import compose_single

    setup_logging(verbose)
    typer.echo(f"🖼️  Composing {photo}")
    branding = BrandingSpec(
        overlay_text=overlay,
        footer_text=footer,
        show_date=show_date,
        primary_color=color,
    )
    try:
        composed = compose_single(_read_files([photo])[0], branding)
    except SnapboothError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    if not composed.branded:
        typer.echo("   No branding applied")
    _write_output(output, composed.image)


@app.command()
def strip(
    photos: List[Path] = typer.Argument(..., help="Up to four captured photos"),
    output: Path = typer.Option(Path("output/strip.jpg"), "--output", "-o", help="Output JPEG path"),
    event_name: str = typer.Option("SnapBooth", "--event-name", "-n", help="Header text"),
    footer: str = typer.Option("", "--footer", help="Footer text; defaults to today's date"),
    color: str = typer.Option("#1a1a2e", "--color", help="Background colour"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Compose a photo strip locally."""
    from .editor import compose_strip

    setup_logging(verbose)
    if len(photos) > 4:
        typer.echo(f"⚠️  {len(photos)} photos given, using the first 4")
    typer.echo(f"🎞️  Composing strip from {min(len(photos), 4)} photos")

    branding = BrandingSpec(event_name=event_name, footer_text=footer, primary_color=color)
    try:
        data = compose_strip(_read_files(photos), branding)
    except SnapboothError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    _write_output(output, data)


@app.command()
def gif(
    frames: List[Path] = typer.Argument(..., help="Frames in playback order"),
    output: Path = typer.Option(Path("output/loop.gif"), "--output", "-o", help="Output GIF path"),
    boomerang: bool = typer.Option(False, "--boomerang", "-b", help="Play forward then backward"),
    fps: Optional[int] = typer.Option(None, "--fps", help="Frame rate", min=1, max=30),
    width: int = typer.Option(800, "--width", "-w", help="Output width in pixels", min=16),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Encode a looping GIF or boomerang locally."""
    from .editor.sequence import BOOMERANG_FPS, GIF_FPS, boomerang_frames, encode_gif

    setup_logging(verbose)
    data = _read_files(frames)
    if boomerang:
        data = boomerang_frames(data)
    rate = fps or (BOOMERANG_FPS if boomerang else GIF_FPS)
    typer.echo(f"🔁 Encoding {len(data)} frames at {rate}fps")

    try:
        encoded = encode_gif(data, fps=rate, width=width)
    except SnapboothError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    _write_output(output, encoded)


@app.command()
def restyle(
    photo: Path = typer.Argument(..., help="Photo to restyle"),
    style: str = typer.Option("surprise", "--style", "-s", help="Style key, or 'surprise'"),
    prompt: Optional[str] = typer.Option(None, "--prompt", help="Custom prompt"),
    output: Path = typer.Option(Path("output/restyled.jpg"), "--output", "-o", help="Output JPEG path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Restyle one photo through the inference endpoint."""
    from .services.restyle import RestyleGateway

    setup_logging(verbose)
    try:
        config.validate_ai_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    def on_progress(payload: dict) -> None:
        typer.echo(f"   ⏳ {payload['message']}")

    try:
        gateway = RestyleGateway()
        spec = gateway.resolve(style)
        typer.echo(f"{spec.emoji} Restyling as {spec.name}")
        data = gateway.restyle(_read_files([photo])[0], spec, prompt, on_progress)
    except SnapboothError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    _write_output(output, data)


@app.command()
def export(
    event_id: str = typer.Argument(..., help="Event id or slug"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output ZIP path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Download every artifact of an event into one ZIP."""
    from .services import MediaService

    setup_logging(verbose)
    try:
        stream = MediaService.from_config().export_archive(event_id)
    except (SnapboothError, ValueError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    target = output or Path(stream.filename)
    target.parent.mkdir(parents=True, exist_ok=True)
    typer.echo(f"📦 Exporting {len(stream.artifacts)} artifacts to {target}")
    with open(target, "wb") as f:
        for chunk in stream:
            f.write(chunk)

    typer.echo(f"✅ Saved: {target}")
    typer.echo(f"   Included: {stream.included}")
    if stream.skipped:
        typer.echo(f"⚠️  Skipped: {len(stream.skipped)}")
        for entry in stream.skipped:
            typer.echo(f"   - {entry.artifact_id}: {entry.reason.value} {entry.detail}")


@app.command()
def wipe(
    event_id: str = typer.Argument(..., help="Event id or slug"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Delete every artifact of an event."""
    from .services import MediaService

    setup_logging(verbose)
    if not yes:
        typer.confirm(f"Delete all photos of event {event_id}?", abort=True)

    try:
        removed = MediaService.from_config().wipe_event(event_id)
    except (SnapboothError, ValueError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    typer.echo(f"🗑️  Deleted {removed} artifacts")


if __name__ == "__main__":
    app()
