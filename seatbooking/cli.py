import click
from flask.cli import with_appcontext

from .services import seat_booking


@click.command('reconcile-bookings')
@with_appcontext
def reconcile_bookings_command():
    """Push bookings held locally to the booking store."""
    pushed, kept, dropped = seat_booking().bookings_list.reconcile()
    click.echo(
        f"{pushed} booking(s) pushed, {kept} still held locally, {dropped} rejected and dropped"
    )


def register_commands(app):
    app.cli.add_command(reconcile_bookings_command)
