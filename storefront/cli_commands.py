"""
Flask CLI commands.

Commands:
- flask init-db: Create the storefront tables
- flask active-sales: List the sales that apply right now
"""

import click
from storefront.database import create_all, get_session
from storefront.services.sale_lookup_service import get_active_sales
from storefront.utils.formatters import datetime_pk


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('active-sales')
    def active_sales_command():
        """Print currently applicable sales, newest first."""
        sales = get_active_sales(get_session())
        if not sales:
            click.echo('No active sales.')
            return

        for sale in sales:
            scope = 'GLOBAL' if sale.is_global else f'product {sale.product_id}'
            click.echo(f'{sale.id}  {sale.discount_percentage}% off  {scope}  '
                       f'until {datetime_pk(sale.end_date)}')
