"""
Default role template provisioned into every new venue.

Each entry names a system role with its hierarchy level, the role_type users
bound to it receive, and either a list of permission names or the ALL
sentinel. ALL is resolved against the live catalog at provisioning time, so
permissions added later are picked up by re-running provisioning.
"""

ALL = 'ALL'

DEFAULT_ROLES = {
    'Owner': {
        'description': 'Venue owner with full access to every feature',
        'level': 100,
        'role_type': 'owner',
        'is_owner_template': True,
        'permissions': ALL,
    },
    'Manager': {
        'description': 'Runs day-to-day operations: events, clients, finance and team visibility',
        'level': 75,
        'role_type': 'manager',
        'permissions': [
            'events.create', 'events.read.all', 'events.update.all', 'events.delete.all', 'events.export',
            'clients.create', 'clients.read.all', 'clients.update.all', 'clients.delete.all',
            'partners.create', 'partners.read.all', 'partners.update.all', 'partners.delete.all',
            'finance.create', 'finance.read.all', 'finance.update.all', 'finance.export',
            'payments.create', 'payments.read.all', 'payments.update.all',
            'tasks.create', 'tasks.read.all', 'tasks.update.all', 'tasks.delete.all',
            'reminders.create', 'reminders.read.all', 'reminders.update.all', 'reminders.delete.all',
            'users.create', 'users.read.all',
            'roles.read.all',
            'venue.read',
            'reports.read.all', 'reports.export',
            'settings.read',
        ],
    },
    'Staff': {
        'description': 'Handles assigned events and tasks',
        'level': 50,
        'role_type': 'staff',
        'permissions': [
            'events.create', 'events.read.all', 'events.read.own', 'events.update.own',
            'clients.create', 'clients.read.all',
            'tasks.read.own', 'tasks.update.own',
            'reminders.create', 'reminders.read.all',
            'venue.read',
        ],
    },
    'Viewer': {
        'description': 'Read-only access to the venue calendar, clients and reports',
        'level': 10,
        'role_type': 'viewer',
        'permissions': [
            'events.read.all',
            'clients.read.all',
            'partners.read.all',
            'tasks.read.own',
            'reminders.read.all',
            'venue.read',
            'reports.read.all',
        ],
    },
}


def role_type_for(role):
    """
    Derive the role_type a user bound to `role` receives.

    System roles map through the template; any other role is 'custom'.
    """
    if role.is_system:
        template = DEFAULT_ROLES.get(role.name)
        if template is not None:
            return template['role_type']
    return 'custom'
