"""
Management command to check the open fuel shift.

Usage:
    python manage.py fuel_shift
    python manage.py fuel_shift --dry-run
    python manage.py fuel_shift --clear-pointer
"""

from django.core.management.base import BaseCommand, CommandError

from fuelshift.coordinator import ShiftCoordinator
from fuelshift.exceptions import ShiftError
from fuelshift.pointer import ShiftPointerCache
from fuelshift.reconciliation import expected_closing
from fuelshift.states import OpenShift


class Command(BaseCommand):
    """Verify fuel shift command."""

    help = 'Verifica o turno de abastecimento em aberto'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Mostra apenas o ponteiro local, sem consultar o servidor'
        )
        parser.add_argument(
            '--clear-pointer',
            action='store_true',
            help='Remove o ponteiro local antes de verificar'
        )

    def handle(self, *args, **options):
        pointer = ShiftPointerCache()

        if options['clear_pointer']:
            pointer.clear()
            self.stdout.write('Ponteiro local removido')

        if options['dry_run']:
            shift_id = pointer.get()
            if shift_id is None:
                self.stdout.write('Nenhum turno no ponteiro local')
            else:
                self.stdout.write(f'Ponteiro local: turno {shift_id}')
            return

        coordinator = ShiftCoordinator(pointer=pointer)
        try:
            state = coordinator.verify(force=True)
        except ShiftError as e:
            raise CommandError(e.message) from e

        if isinstance(state, OpenShift):
            shift = state.shift
            expected = expected_closing(shift.starting_stock, shift.fuel_intake, shift.entries)
            self.stdout.write(self.style.SUCCESS(
                f'Turno {shift.id} em aberto ({shift.responsible_name}): '
                f'{len(shift.entries)} abastecimento(s), existência prevista {expected} L'
            ))
        else:
            self.stdout.write('Nenhum turno em aberto')
