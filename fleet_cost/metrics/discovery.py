"""
App discovery.

Resolves deployed apps and their identifiers in each metric keyspace
from the account's worker scripts, container applications, and
Durable Object namespaces.
"""

import asyncio
import logging
from typing import List, Optional

from fleet_cost.core.errors import AppNotFoundError
from fleet_cost.core.usage import AppTarget
from .graphql_client import CloudflareClient

logger = logging.getLogger(__name__)

DURABLE_OBJECT_CLASS = "AppContainer"


async def discover_apps(
    client: CloudflareClient,
    script_prefix: str,
    app_name: Optional[str] = None,
) -> List[AppTarget]:
    """List deployed apps, optionally restricted to one.

    Args:
        client: Vendor API client
        script_prefix: Prefix identifying this tool's worker scripts
        app_name: Optional single app to resolve

    Returns:
        AppTargets sorted by name

    Raises:
        AppNotFoundError: If no apps are deployed, or app_name is not among them
        UpstreamUnavailable: If any listing call fails
    """
    tasks = [
        asyncio.create_task(client.rest_get("discovery", path))
        for path in ("/workers/scripts", "/containers/applications", "/workers/durable_objects/namespaces")
    ]
    try:
        scripts, container_apps, namespaces = await asyncio.gather(*tasks)
    except Exception:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    scripts, container_apps, namespaces = (
        [item for item in listing if isinstance(item, dict)]
        for listing in (scripts, container_apps, namespaces)
    )

    script_ids = [s.get("id") for s in scripts
                  if isinstance(s.get("id"), str) and s["id"].startswith(script_prefix)]
    if not script_ids:
        raise AppNotFoundError("No apps deployed.")

    if app_name is not None:
        wanted = f"{script_prefix}{app_name}"
        if wanted not in script_ids:
            raise AppNotFoundError(f"App {app_name} not found.")
        script_ids = [wanted]

    application_ids = {c.get("name"): c.get("id") for c in container_apps}
    namespace_ids = {
        n.get("script"): n.get("id")
        for n in namespaces
        if n.get("class") == DURABLE_OBJECT_CLASS
    }

    apps = [
        AppTarget(
            name=script_id[len(script_prefix):],
            script_id=script_id,
            namespace_id=namespace_ids.get(script_id),
            application_id=application_ids.get(script_id),
        )
        for script_id in script_ids
    ]
    apps.sort(key=lambda a: a.name)

    logger.debug("Discovered %d app(s)", len(apps))
    return apps
