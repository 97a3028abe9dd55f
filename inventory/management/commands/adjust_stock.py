from catalog.models import Item
from django.core.management.base import BaseCommand, CommandError
from inventory.services import MovementError, adjust_stock


class Command(BaseCommand):
    help = "Set an item's on-hand stock after a physical count, recording the difference in the ledger."

    def add_arguments(self, parser):
        parser.add_argument("item_id", type=int)
        parser.add_argument("quantity", type=int, help="Counted on-hand quantity")
        parser.add_argument("--reason", default="stock count")

    def handle(self, *args, **options):
        try:
            item = Item.objects.get(id=options["item_id"])
        except Item.DoesNotExist:
            raise CommandError(f"Item {options['item_id']} does not exist")
        try:
            entry = adjust_stock(item=item, new_quantity=options["quantity"], reason=options["reason"])
        except MovementError as exc:
            raise CommandError(str(exc))
        if entry is None:
            self.stdout.write("Stock unchanged")
            return
        self.stdout.write(self.style.SUCCESS(f"Stock adjusted by {entry.quantity:+d} to {entry.new_quantity}"))
