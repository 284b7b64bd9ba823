import time
import click
import logging

from evidence_harness.hooks import ScenarioHooks
from evidence_harness.reporting.layout import DEFAULT_ROOT, pdf_output_path, report_locations
from evidence_harness.reporting.report_assembler import ReportAssembler, environment_lines, find_images
from evidence_harness.utils.config import ConfigResolver, overrides_from_env

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")


def _resolve(config_path, browser=None, headless=None, width=None, height=None, interval=None):
    overrides = overrides_from_env()
    explicit = {
        "browser": browser,
        "headless": headless,
        "window.width": width,
        "window.height": height,
        "screenshot.interval": interval,
    }
    overrides.update({key: value for key, value in explicit.items() if value is not None})
    return ConfigResolver(path=config_path, overrides=overrides).resolve()


def config_options(func):
    func = click.option("--interval", type=int, default=None, help="Override screenshot.interval")(func)
    func = click.option("--height", type=int, default=None, help="Override window.height")(func)
    func = click.option("--width", type=int, default=None, help="Override window.width")(func)
    func = click.option("--headless/--no-headless", default=None, help="Override headless mode")(func)
    func = click.option(
        "--browser", default=None,
        type=click.Choice(["chromium", "chrome", "firefox", "http", "htmlunit"]),
        help="Override the browser engine",
    )(func)
    func = click.option("--config", "config_path", default=None, help="Path to the driver YAML file")(func)
    return func


@click.group()
def cli():
    """Browser Evidence Harness - capture scenario evidence and build reports."""
    pass


@cli.command()
@config_options
def config(config_path, browser, headless, width, height, interval):
    """Show the effective configuration."""
    resolved = _resolve(config_path, browser, headless, width, height, interval)
    for key, value in resolved.as_dict().items():
        click.echo(f"{key}: {value}")
    click.echo(f"container: {resolved.in_container}")


@cli.command()
@click.option("--root", default=DEFAULT_ROOT, help="Output root holding the captured screenshots")
@click.option("--output-dir", default=None, help="Directory for the PDF (defaults to <root>/test-reports)")
@config_options
def report(root, output_dir, config_path, browser, headless, width, height, interval):
    """Assemble captured screenshots into a PDF report."""
    logger.info("Generating screenshot PDF report")
    images = find_images(root)
    if not images:
        click.echo("No screenshots found to include in the report.")
        return
    logger.info(f"Found {len(images)} screenshots to include in the report")

    output_path = pdf_output_path(root, output_dir=output_dir)

    resolved = _resolve(config_path, browser, headless, width, height, interval)
    assembler = ReportAssembler(environment=environment_lines(resolved))
    result = assembler.assemble(images, output_path)
    if result.skipped:
        logger.warning(f"{len(result.skipped)} images could not be embedded")
    click.echo(result.output_path)


@cli.command()
@click.option("--root", default=DEFAULT_ROOT, help="Output root to inspect")
def locate(root):
    """Show where the latest reports are."""
    locations = report_locations(root)
    if not locations["report_dir"]:
        click.echo("No evidence report directory found")
        return
    click.echo(f"Report Directory: {locations['report_dir']}")
    for path in locations["pdf"]:
        click.echo(f"PDF: {path}")
    for path in locations["html"]:
        click.echo(f"HTML: {path}")


@cli.command()
@click.option("--url", required=True, help="Page to capture")
@click.option("--name", default="Snapshot", help="Scenario name used for labels")
@click.option("--output-dir", default=DEFAULT_ROOT, help="Output root for the evidence")
@config_options
def snapshot(url, name, output_dir, config_path, browser, headless, width, height, interval):
    """Open a session, visit a page and capture a full scenario's worth of evidence."""
    resolved = _resolve(config_path, browser, headless, width, height, interval)
    hooks = ScenarioHooks(resolved, output_root=output_dir)
    status = "PASSED"
    try:
        hooks.before_scenario(name)
        hooks.before_step()
        try:
            hooks.sessions.get().navigate(url)
        except Exception as e:
            logger.warning(f"Navigation to {url} failed: {e}")
            status = "FAILED"
        time.sleep(resolved.screenshot_interval)
        hooks.after_step(status=status)
    finally:
        exported = hooks.after_scenario(status)
        hooks.after_all()
    if exported:
        click.echo(exported)


if __name__ == "__main__":
    cli()
