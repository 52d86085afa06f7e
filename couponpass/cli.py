# couponpass/cli.py
# Command line entry points: run the API server or build a single pass locally.
import json
import sys
from pathlib import Path

import click
import uvicorn

from .config import Settings, configure_logging
from .errors import PassGenerationError
from .schemas import PassRequest
from .services.pass_service import PassService
from .services.pkpass_creator import PKPassCreator


@click.group()
@click.option("--env-file", type=click.Path(dir_okay=False), default=None, help="Path to a .env file.")
@click.pass_context
def cli(ctx, env_file):
    settings = Settings.from_env(env_file)
    configure_logging(settings.log_level)
    ctx.obj = settings


@cli.command()
@click.option("--host", default=None, help="Bind host (default: HOST or 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Bind port (default: PORT or 3000)")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
@click.pass_obj
def serve(settings, host, port, reload):
    """Run the coupon pass API."""
    uvicorn.run(
        "couponpass.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command()
@click.option("--discount", required=True, help="Discount text shown on the pass, e.g. '20%'.")
@click.option("--service-type", default=None, help="Service label.")
@click.option("--expiry-date", default=None, help="Expiry date, e.g. 2025-06-01.")
@click.option("--background-color", default=None, help="Background color as rgb(r, g, b).")
@click.option("--image", "image_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Strip image file.")
@click.option("--base-url", default=None, help="Public base URL used in the QR code.")
@click.pass_obj
def generate(settings, discount, service_type, expiry_date, background_color, image_path, base_url):
    """Generate one signed coupon pass into the output directory."""
    request = PassRequest(
        discount=discount,
        service_type=service_type,
        expiry_date=expiry_date,
        background_color=background_color,
    )
    strip_image = Path(image_path).read_bytes() if image_path else None
    base_url = base_url or settings.public_base_url or f"http://localhost:{settings.port}"

    try:
        service = PassService.from_settings(settings, PKPassCreator(settings.signing_identity()))
        result = service.generate(request, base_url, strip_image)
    except (PassGenerationError, ValueError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Created: {result.path}")
    click.echo(json.dumps({"passId": result.pass_id, "passUrl": result.pass_url}, indent=2))


if __name__ == "__main__":
    cli()
