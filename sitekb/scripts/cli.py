"""SiteKB command line interface."""

import asyncio
import logging
from typing import Optional

import orjson
import typer
from tqdm import tqdm

from sitekb.core.errors import SiteKBError
from sitekb.core.logging import setup_logging
from sitekb.services.jobs import SiteJobs, create_jobs

setup_logging()
logger = logging.getLogger(__name__)

app = typer.Typer(help="Crawl websites into knowledge bases and ask questions about them.")


async def _with_jobs(action):
    jobs = create_jobs()
    try:
        return await action(jobs)
    finally:
        await jobs.close()


def _run(action):
    try:
        return asyncio.run(_with_jobs(action))
    except SiteKBError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _echo_json(payload) -> None:
    typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))


@app.command("process-site")
def process_site(
    url: str = typer.Argument(..., help="Site root URL; its /sitemap.xml is crawled"),
):
    """Crawl a site and publish it to its knowledge base."""

    async def action(jobs: SiteJobs):
        with tqdm(desc="Processing pages", unit="page") as pbar:

            def on_batch(batch, outcomes):
                pbar.update(len(batch.urls))
                pbar.set_postfix(ok=sum(o.ok for o in outcomes), failed=sum(not o.ok for o in outcomes))

            return await jobs.process_site(url, on_batch=on_batch)

    result = _run(action)
    logger.info(f"Published {result.pages} pages of {result.site_url} to {result.knowledge_base_id}")
    _echo_json(result.model_dump())


@app.command("process-url")
def process_url(
    url: str = typer.Argument(..., help="Page URL to fetch and segment"),
):
    """Fetch one page and print its sections."""
    page = _run(lambda jobs: jobs.process_single_url(url))
    _echo_json(page.model_dump())


@app.command("delete-kb")
def delete_kb(
    knowledge_base_id: str = typer.Argument(..., help="Knowledge base to delete"),
    forget_site: Optional[str] = typer.Option(None, help="Also remove this site's registry entry"),
):
    """Delete a knowledge base."""
    remaining = _run(lambda jobs: jobs.delete_knowledge_base(knowledge_base_id, forget_site=forget_site))
    typer.echo(f"Deleted {knowledge_base_id}")
    for site_url in remaining:
        typer.echo(f"Registry still maps {site_url} to {knowledge_base_id}")


@app.command("ask")
def ask(
    site_url: str = typer.Argument(..., help="Previously processed site root URL"),
    question: str = typer.Argument(..., help="Question to ask"),
    thread_id: Optional[str] = typer.Option(None, help="Continue an existing thread"),
):
    """Ask a question about a processed site."""
    messages = _run(lambda jobs: jobs.ask_question(question, site_url, thread_id=thread_id))
    _echo_json([message.model_dump() for message in messages])


if __name__ == "__main__":
    app()
