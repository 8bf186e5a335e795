"""Port allocation for containerized apps.

Ports are a pure function of the sorted app list: a counter starts at
BASE_PORT and advances only on containerized apps. Adding or removing a
containerized app that sorts earlier shifts every later port by one; there is
no persisted port table to prevent that.
"""

from foldhost.topology.types import AppRecord, PortAssignment

BASE_PORT = 3000


def allocate_ports(apps: list[AppRecord], base_port: int = BASE_PORT) -> list[PortAssignment]:
    """Assign consecutive ports to containerized apps in list order.

    Example: abc(c), blog(s), myapi(c), xyz(c) -> abc=3000, myapi=3001, xyz=3002.
    """
    assignments = []
    port = base_port
    for app in apps:
        if app.is_containerized:
            assignments.append(PortAssignment(app=app.name, port=port))
            port += 1
    return assignments
