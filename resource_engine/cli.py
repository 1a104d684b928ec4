"""
Command-line interface for resource engine operations.
"""

import json
from typing import Optional

import click

from resource_engine.config import settings
from resource_engine.directory.search import (
    DirectoryFilter,
    LocationFilter,
    SortKey,
    SortOrder,
)
from resource_engine.exceptions import ResourceEngineException
from resource_engine.integration import ResourceEngineServices
from resource_engine.logging_config import get_logger, setup_logging
from resource_engine.recommendations.populate_resources import load_resources_file
from resource_engine.recommendations.resource_catalog import Coordinates, DirectoryCategory, Urgency

logger = get_logger(__name__)


def _services(resources_file: Optional[str]) -> ResourceEngineServices:
    """Build services from a resources file, or the seed catalog"""
    resources = load_resources_file(resources_file) if resources_file else None
    return ResourceEngineServices(resources=resources)


@click.group()
def cli():
    """Support Resource Engine Command Line Interface"""
    setup_logging()


@cli.command()
@click.option('--host', default=None, help='Bind host (defaults to API_HOST)')
@click.option('--port', default=None, type=int, help='Bind port (defaults to API_PORT)')
@click.option('--reload', is_flag=True, help='Reload on code changes')
def serve(host, port, reload):
    """Run the API server"""
    from resource_engine.main import run_api_server

    run_api_server(host=host, port=port, reload=reload)


@cli.command()
@click.argument('profile_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--max', 'max_recommendations', default=None, type=int, help='Maximum recommendations')
@click.option('--min-urgency', type=click.Choice([u.value for u in Urgency]), help='Lowest urgency tier')
@click.option('--variant', 'assignment_id', help='Experiment variant id governing the request')
@click.option('--auto-assign', is_flag=True, help='Assign the user to an eligible experiment')
@click.option('--resources', 'resources_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON file of resources to use instead of the seed catalog')
def recommend(profile_file, max_recommendations, min_urgency, assignment_id, auto_assign, resources_file):
    """Recommend resources for the profile in PROFILE_FILE"""
    with open(profile_file, 'r', encoding='utf-8') as f:
        try:
            profile = json.load(f)
        except json.JSONDecodeError as e:
            click.echo(f"✗ Profile file is not valid JSON: {e}", err=True)
            raise click.Abort()

    context = {
        "max_recommendations": max_recommendations or settings.api.default_max_recommendations,
        "min_urgency": min_urgency,
    }

    try:
        services = _services(resources_file)
        candidates = services.recommendation_engine.get_recommendations(
            profile, context, assignment_id=assignment_id, auto_assign=auto_assign
        )
    except ResourceEngineException as e:
        logger.warning("cli_recommendation_failed", error=type(e).__name__, message=e.message)
        click.echo(f"✗ Recommendation failed: {e.message}", err=True)
        if e.details:
            click.echo(json.dumps(e.details, indent=2, default=str), err=True)
        raise click.Abort()

    if not candidates:
        click.echo("No resources qualified for this profile")
        return

    language = profile.get("demographics", {}).get("language", "en")
    click.echo(f"\n=== {len(candidates)} Recommendations ===\n")
    for position, candidate in enumerate(candidates, start=1):
        click.echo(f"{position}. {candidate.resource.name.get(language)} [{candidate.resource_id}]")
        click.echo(f"   Score: {candidate.score:.3f}  Urgency: {candidate.urgency.value}  "
                   f"Strategy: {candidate.strategy.value}")
        for reason in candidate.reasons:
            click.echo(f"   - {reason}")
        if candidate.personalized_message:
            click.echo(f"   {candidate.personalized_message}")
        click.echo()


@cli.command()
@click.option('--category', 'categories', multiple=True,
              type=click.Choice([c.value for c in DirectoryCategory]), help='Directory category')
@click.option('--language', 'languages', multiple=True, help='Language code the resource must offer')
@click.option('--cost', multiple=True, help='Accepted cost model')
@click.option('--query', help='Free-text query')
@click.option('--lat', type=float, help='Requester latitude')
@click.option('--lon', type=float, help='Requester longitude')
@click.option('--max-distance', type=float, help='Maximum distance in km')
@click.option('--sort-by', type=click.Choice([k.value for k in SortKey]), help='Sort key')
@click.option('--sort-order', type=click.Choice([o.value for o in SortOrder]), help='Sort order')
@click.option('--resources', 'resources_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON file of resources to use instead of the seed catalog')
def search(categories, languages, cost, query, lat, lon, max_distance, sort_by, sort_order, resources_file):
    """Search the resource directory"""
    if (lat is None) != (lon is None):
        click.echo("✗ --lat and --lon must be given together", err=True)
        raise click.Abort()

    requester = Coordinates(latitude=lat, longitude=lon) if lat is not None else None
    criteria = DirectoryFilter(
        categories=list(categories),
        languages=list(languages),
        cost=list(cost),
        search_query=query,
        location=LocationFilter(max_distance=max_distance) if max_distance else None,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    try:
        services = _services(resources_file)
        results = services.directory_search.search(criteria, requester)
    except ResourceEngineException as e:
        click.echo(f"✗ Search failed: {e.message}", err=True)
        raise click.Abort()

    click.echo(f"\nFound {len(results)} resources\n")
    for result in results:
        resource = result.resource
        status = "✓ OPEN" if result.is_currently_open else "  CLOSED"
        click.echo(f"{status} {resource.name.en} [{resource.id}]")
        click.echo(f"         Relevance: {result.relevance_score:.1f}  "
                   f"Rating: {resource.quality.average_rating}")
        if result.distance is not None:
            click.echo(f"         Distance: {result.distance:.2f} km")
        if not result.is_currently_open and result.next_available_time:
            click.echo(f"         Next available: {result.next_available_time}")


@cli.group()
def resources():
    """Resource catalog commands"""
    pass


@resources.command('list')
@click.option('--resources', 'resources_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON file of resources to use instead of the seed catalog')
def resources_list(resources_file):
    """List active resources"""
    try:
        services = _services(resources_file)
    except ResourceEngineException as e:
        click.echo(f"✗ Failed to load resources: {e.message}", err=True)
        raise click.Abort()

    all_resources = services.catalog.get_all_resources()
    click.echo(f"\nActive resources: {len(all_resources)}\n")
    for resource in all_resources:
        click.echo(f"{resource.id} ({resource.resource_type.value})")
        click.echo(f"         Name: {resource.name.en}")
        click.echo(f"         Languages: {', '.join(resource.metadata.languages)}")
        click.echo(f"         Risk levels: {', '.join(resource.metadata.risk_levels)}\n")


@resources.command('validate')
@click.argument('resources_file', type=click.Path(exists=True, dir_okay=False))
def resources_validate(resources_file):
    """Validate a JSON file of resources"""
    try:
        records = load_resources_file(resources_file)
    except ResourceEngineException as e:
        click.echo(f"✗ {e.message}", err=True)
        if e.details:
            click.echo(json.dumps(e.details, indent=2, default=str), err=True)
        raise click.Abort()

    click.echo(f"✓ {len(records)} resources are valid")


@cli.group()
def experiments():
    """Experiment commands"""
    pass


@experiments.command('list')
def experiments_list():
    """List registered experiments"""
    services = ResourceEngineServices()
    all_experiments = services.router.list_experiments()

    if not all_experiments:
        click.echo("No experiments found")
        return

    click.echo(f"\nTotal experiments: {len(all_experiments)}\n")
    for experiment in all_experiments:
        click.echo(f"ID: {experiment.id}")
        click.echo(f"Name: {experiment.name}")
        click.echo(f"Status: {experiment.status.value}")
        click.echo(f"Traffic: {experiment.traffic_allocation:.0%}")
        for variant in experiment.variants:
            click.echo(f"  - {variant.id} ({variant.strategy.value}, weight {variant.weight})")
        click.echo()


@cli.group()
def system():
    """System management commands"""
    pass


@system.command()
def health():
    """Check system health"""
    services = ResourceEngineServices()
    health_status = services.health_check()

    click.echo("\n=== System Health Check ===\n")
    click.echo(f"Overall Status: {health_status['overall_status'].upper()}")
    click.echo(f"Timestamp: {health_status['timestamp']}\n")

    click.echo("Components:")
    for component, status in health_status['components'].items():
        if isinstance(status, dict):
            click.echo(f"  {component}: {status.get('status', 'unknown')}")
        else:
            click.echo(f"  {component}: {status}")


@system.command()
def stats():
    """Show system statistics"""
    services = ResourceEngineServices()
    statistics = services.get_statistics()

    click.echo("\n=== System Statistics ===\n")
    click.echo(f"Timestamp: {statistics['timestamp']}\n")
    catalog = statistics['catalog']
    click.echo("Catalog:")
    click.echo(f"  Active: {catalog['active_resources']}")
    click.echo(f"  Total: {catalog['total_resources']}")
    click.echo(f"  Average rating: {catalog['average_rating']:.2f}\n")
    click.echo(f"Experiments: {statistics['experiments']['total']}")
    click.echo(f"Scoring config: {statistics['scoring_config_version']}")


if __name__ == '__main__':
    cli()
