# cli.py
# Interactive terminal storefront for the storefront API.
import argparse
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.prompt import IntPrompt, Confirm, Prompt
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.text import Text
from rich import box

from prompt_toolkit import PromptSession, prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from shopapi.models import CATEGORIES, Product, ProductPage
from shopapi.query import SORT_LABELS
from shopsdk.admin import AdminSession
from shopsdk.cart import Cart
from shopsdk.checkout import DEFAULT_WHATSAPP_NUMBER, EmptyCartError, checkout
from shopsdk.client import DEFAULT_BASE_URL, StoreClient
from shopsdk.errors import ApiError
from shopsdk.filters import FilterState, FilterSync
from shopsdk.storage import JsonFileStorage

console = Console()

API_URL = os.getenv("STORE_API_URL", DEFAULT_BASE_URL)
WHATSAPP_NUMBER = os.getenv("WHATSAPP_NUMBER", DEFAULT_WHATSAPP_NUMBER)
STATE_DIR = Path(os.getenv("STOREFRONT_STATE_DIR", "~/.storefront")).expanduser()

status_message = "Ready"

# Custom prompt style for prompt_toolkit
custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


# ---------------------------
# Display helpers
# ---------------------------
def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def product_rating(product_id: Optional[str]):
    """Stable pseudo rating shown on product cards: (rating "3.5".."4.9", reviews 50..149)."""
    if not product_id:
        return "4.5", 100
    h = 0
    for ch in product_id:
        h = ord(ch) + (_to_int32(_to_int32(h) << 5) - h)
    rating = 3.5 + (abs(h) % 15) / 10
    return f"{rating:.1f}", abs(h) % 100 + 50


def describe_filters(state: FilterState) -> str:
    parts = []
    if state.search:
        parts.append(f"search '{state.search}'")
    if state.category != "all":
        parts.append(f"category {state.category}")
    if state.sort:
        parts.append(SORT_LABELS.get(state.sort, state.sort))
    return ", ".join(parts) or "all products"


def show_products(page: Optional[ProductPage], state: Optional[FilterState] = None):
    if page is None or not page.products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    title = "📦 Products"
    if state is not None:
        title += f" ({describe_filters(state)})"

    table = Table(
        title=title,
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", width=26)
    table.add_column("Name", style="bold", width=28)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Category", width=15)
    table.add_column("Rating", justify="right", width=12)

    for p in page.products:
        rating, reviews = product_rating(p.id)
        table.add_row(p.id, p.name, f"${p.price:.2f}", p.category, f"★ {rating} ({reviews})")
    console.print(table)
    console.print(show_pagination(page))


def show_pagination(page: ProductPage) -> Text:
    text = Text()
    text.append("◀ prev  " if page.has_prev else "        ", style="cyan")
    text.append(f"Page {page.current_page} of {max(page.total_pages, 1)}", style="bold")
    text.append(f"  ({page.total_products} products)", style="dim")
    text.append("  next ▶" if page.has_next else "", style="cyan")
    return text


def show_product(product: Product, image_url: str):
    rating, reviews = product_rating(product.id)
    body = Text()
    body.append(f"{product.name}\n", style="bold")
    body.append(f"${product.price:.2f}\n", style="bold green")
    body.append(f"Category: {product.category}\n")
    body.append(f"Rating: ★ {rating} ({reviews} reviews)\n")
    body.append(f"Image: {image_url}\n", style="dim")
    body.append(f"Added: {product.created_at:%Y-%m-%d}", style="dim")
    console.print(Panel(body, title=f"ℹ️ {product.id}", border_style="cyan"))


def show_cart(cart: Cart):
    title = Text()
    title.append("🛒 Shopping Cart", style="bold")
    title.append(f" - {cart.count()} items", style="bold cyan")
    title.append(f" - Total: ${cart.total():.2f}", style="bold green")

    if cart.is_empty():
        console.print(Panel("Your cart is empty 🛍️", title=title, style="blue"))
        return

    table = Table(box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("#", justify="right", width=3)
    table.add_column("Product", style="bold", width=30)
    table.add_column("Qty", justify="right", width=8)
    table.add_column("Price", justify="right", width=12)
    table.add_column("Subtotal", justify="right", width=12)

    for index, item in enumerate(cart.items, start=1):
        table.add_row(
            str(index),
            item.product.name,
            str(item.quantity),
            f"${item.product.price:.2f}",
            f"${item.line_total:.2f}",
        )
    console.print(Panel(table, title=title, border_style="blue"))


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper with exception handling
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner.
    Returns the result, or None after printing the error.
    """
    global status_message
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)

        if success_msg:
            status_message = success_msg
            console.print(show_status(success_msg, True))
        return result
    except ApiError as e:
        status_message = f"Error: {e.message}"
    except Exception as e:
        status_message = f"Error: {e}"
    console.print(show_status(status_message, False))
    return None


# ---------------------------
# Storefront state
# ---------------------------
class Storefront:
    def __init__(self, client: StoreClient, state_dir: Path = STATE_DIR, whatsapp_number: str = WHATSAPP_NUMBER):
        self.client = client
        self.whatsapp_number = whatsapp_number
        storage = JsonFileStorage(state_dir / "state.json")
        self.cart = Cart(storage)
        self.admin = AdminSession(client, storage)
        self.filters = FilterSync(self._fetch, storage)

    def _fetch(self, state: FilterState) -> ProductPage:
        return self.client.list_products(
            search=state.search, category=state.category, sort=state.sort,
            page=state.page, limit=state.limit,
        )

    @property
    def page(self) -> Optional[ProductPage]:
        return self.filters.result

    def visible_products(self) -> List[Product]:
        return list(self.page.products) if self.page else []

    def product_completer(self) -> WordCompleter:
        return WordCompleter([p.id for p in self.visible_products()], ignore_case=True)

    def report_fetch_error(self):
        if self.filters.error is not None:
            err = self.filters.error
            message = err.message if isinstance(err, ApiError) else str(err)
            console.print(show_status(f"Error: {message}", False))


# ---------------------------
# Layout and Header
# ---------------------------
def create_header(shop: Storefront):
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)

    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    mode = "[bold red]admin[/bold red]" if shop.admin.is_admin else "[dim]guest[/dim]"
    header.add_row(
        f"🛍️ Storefront ({mode})",
        f"[bold blue]🛒 {shop.cart.count()} in cart · ${shop.cart.total():.2f}[/bold blue]",
        f"[dim]{now}[/dim]"
    )
    return Panel(header, style="bold blue")


# ---------------------------
# Input helpers with autocomplete
# ---------------------------
def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def ask_float(message: str, default: float = 10.0) -> float:
    while True:
        raw = Prompt.ask(message, default=str(default))
        try:
            value = float(raw)
        except ValueError:
            console.print("[red]Please enter a valid number.[/red]")
            continue
        if value < 0:
            console.print("[red]Price cannot be negative.[/red]")
            continue
        return value


def live_search(shop: Storefront):
    """Search box: every keystroke re-arms the debounce timer."""
    session = PromptSession(style=custom_style)
    session.default_buffer.on_text_changed += lambda buf: shop.filters.type_search(buf.text)
    text = session.prompt("🔍 Search products: ", default=shop.filters.search_text)
    shop.filters.type_search(text)
    shop.filters.wait(timeout=10)


def choose_category() -> str:
    options = ["all"] + list(CATEGORIES)
    for i, name in enumerate(options):
        console.print(f"  [cyan]{i}[/cyan] {name}")
    idx = IntPrompt.ask("Category", default=0)
    return options[idx] if 0 <= idx < len(options) else "all"


def choose_sort() -> str:
    options = [("", "Newest first")] + list(SORT_LABELS.items())
    for i, (_, label) in enumerate(options):
        console.print(f"  [cyan]{i}[/cyan] {label}")
    idx = IntPrompt.ask("Sort by", default=0)
    return options[idx][0] if 0 <= idx < len(options) else ""


def pick_product(shop: Storefront) -> Optional[Product]:
    pid = prompt_with_autocomplete("Enter product ID", completer=shop.product_completer()).strip()
    if not pid:
        return None
    for p in shop.visible_products():
        if p.id == pid:
            return p
    return try_api(shop.client.get_product, pid)


def product_form(existing: Optional[Product] = None):
    name = Prompt.ask("Product name", default=existing.name if existing else None)
    price = ask_float("💰 Price in dollars", default=existing.price if existing else 10.0)
    category = prompt_with_autocomplete(
        "🏷️ Category", completer=WordCompleter(list(CATEGORIES), ignore_case=True),
        default=existing.category if existing else "Other",
    ).strip()
    image_path = Prompt.ask("Image file (blank for none)", default="").strip() or None
    image_url = None
    if not image_path:
        image_url = Prompt.ask("Image URL (blank for none)", default="").strip() or None
    return name, price, category, image_path, image_url


def confirm_image_url(shop: Storefront, image_url: Optional[str]) -> bool:
    if not image_url or shop.client.probe_image(image_url):
        return True
    return Confirm.ask("[yellow]The image URL may not be valid. Continue anyway?[/yellow]")


# ---------------------------
# Admin actions
# ---------------------------
def admin_add_product(shop: Storefront):
    name, price, category, image_path, image_url = product_form()
    if not confirm_image_url(shop, image_url):
        return
    product = try_api(
        shop.client.create_product, name, price, category,
        image_url=image_url, image_path=image_path,
        success_msg=f"Product '{name}' added",
    )
    if product:
        show_product(product, shop.client.resolve_url(product.image))
        shop.filters.refresh()


def admin_edit_product(shop: Storefront):
    product = pick_product(shop)
    if not product:
        return
    name, price, category, image_path, image_url = product_form(product)
    if not confirm_image_url(shop, image_url):
        return
    updated = try_api(
        shop.client.update_product, product.id, image_path=image_path,
        name=name, price=price, category=category, image=image_url,
        success_msg=f"Product '{name}' updated",
    )
    if updated:
        show_product(updated, shop.client.resolve_url(updated.image))
        shop.filters.refresh()


def admin_delete_product(shop: Storefront):
    product = pick_product(shop)
    if not product:
        return
    if Confirm.ask(f"[red]Delete '{product.name}'?[/red]"):
        if try_api(shop.client.delete_product, product.id, success_msg="Product deleted successfully!") is not None:
            shop.filters.refresh()


# ---------------------------
# Main menu
# ---------------------------
def cart_menu(shop: Storefront):
    shop.cart.open()
    while shop.cart.is_open:
        show_cart(shop.cart)
        if shop.cart.is_empty():
            shop.cart.close()
            break
        action = prompt_with_autocomplete(
            "[+ n / - n / x n / c clear / w checkout / b back]",
            completer=WordCompleter(["+", "-", "x", "c", "w", "b"]),
        ).strip().split()
        if not action or action[0] == "b":
            shop.cart.close()
            continue
        cmd, args = action[0], action[1:]
        if cmd in ("+", "-", "x") and args and args[0].isdigit():
            index = int(args[0]) - 1
            if not 0 <= index < len(shop.cart.items):
                console.print("[red]No such line[/red]")
                continue
            item = shop.cart.items[index]
            if cmd == "+":
                shop.cart.set_quantity(item.product_id, item.quantity + 1)
            elif cmd == "-":
                shop.cart.set_quantity(item.product_id, item.quantity - 1)
            else:
                shop.cart.remove(item.product_id)
        elif cmd == "c":
            shop.cart.clear()
        elif cmd == "w":
            do_checkout(shop)


def do_checkout(shop: Storefront):
    try:
        url = checkout(shop.cart, shop.whatsapp_number)
    except EmptyCartError as e:
        console.print(show_status(str(e), False))
        return
    console.print(show_status("Order prepared! Redirecting to WhatsApp...", True))
    console.print(f"[dim]{url}[/dim]")


def menu(shop: Storefront):
    global status_message

    console.clear()
    try_api(shop.admin.check)
    try_api(shop.filters.restore)
    shop.report_fetch_error()

    while True:
        console.print(create_header(shop))
        show_products(shop.page, shop.filters.state)

        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)

        options = [
            ("s", "🔍 Search", "v", "ℹ️ View product"),
            ("c", "🏷️ Category", "a", "🛒 Add to cart"),
            ("o", "↕️ Sort", "k", "🧺 Open cart"),
            ("n", "▶ Next page", "w", "📱 Checkout via WhatsApp"),
            ("p", "◀ Previous page", "g", "🔢 Go to page"),
            ("x", "🧹 Clear filters", "l", "🔐 Admin login/logout"),
        ]
        if shop.admin.is_admin:
            options.append(("+", "➕ Add product", "e", "✏️ Edit product"))
            options.append(("-", "🗑️ Delete product", "", ""))
        options.append(("", "", "q", "👋 Quit"))

        for row in options:
            menu_table.add_row(*row)

        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        keys = [row[0] for row in options if row[0]] + [row[2] for row in options if row[2]]
        choice = prompt_with_autocomplete(
            "\nChoose an option", completer=WordCompleter(keys + ["quit", "exit"])
        ).strip()

        state = shop.filters.state
        if choice == "s":
            live_search(shop)
        elif choice == "c":
            try_api(shop.filters.set_category, choose_category())
        elif choice == "o":
            try_api(shop.filters.set_sort, choose_sort())
        elif choice == "n":
            if shop.page and shop.page.has_next:
                try_api(shop.filters.set_page, state.page + 1)
        elif choice == "p":
            if shop.page and shop.page.has_prev:
                try_api(shop.filters.set_page, state.page - 1)
        elif choice == "g":
            try_api(shop.filters.set_page, IntPrompt.ask("Page", default=state.page))
        elif choice == "x":
            try_api(shop.filters.clear, success_msg="Filters cleared")
        elif choice == "v":
            product = pick_product(shop)
            if product:
                show_product(product, shop.client.resolve_url(product.image))
                if Confirm.ask("Add to cart?", default=False):
                    qty = IntPrompt.ask("Quantity", default=1)
                    shop.cart.add(product, qty)
        elif choice == "a":
            product = pick_product(shop)
            if product:
                qty = IntPrompt.ask("Quantity", default=1)
                shop.cart.add(product, qty)
                console.print(show_status(f"{product.name} added to cart!", True))
        elif choice == "k":
            cart_menu(shop)
        elif choice == "w":
            do_checkout(shop)
        elif choice == "l":
            if shop.admin.is_admin:
                shop.admin.logout()
                console.print(show_status("Logged out", True))
            else:
                email = prompt_with_autocomplete("Admin email")
                password = Prompt.ask("Password", password=True)
                try_api(shop.admin.login, email, password, success_msg="Login successful!")
        elif choice == "+" and shop.admin.is_admin:
            admin_add_product(shop)
        elif choice == "e" and shop.admin.is_admin:
            admin_edit_product(shop)
        elif choice == "-" and shop.admin.is_admin:
            admin_delete_product(shop)
        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Thanks for shopping! 👋[/bold green]", title="Goodbye"))
                sys.exit(0)

        shop.report_fetch_error()
        console.print()
        console.rule(style="dim")


# ---------------------------
# Scriptable sub-commands
# ---------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storefront CLI")
    parser.add_argument("--api", default=API_URL, help="API base URL")
    subparsers = parser.add_subparsers(dest="command")

    lp = subparsers.add_parser("list-products", help="List products")
    lp.add_argument("--search", help="Name contains (case-insensitive)")
    lp.add_argument("--category", default="all", help="Filter by category")
    lp.add_argument("--sort", default="", choices=["", "price_low", "price_high", "name"])
    lp.add_argument("--page", type=int, default=1)
    lp.add_argument("--limit", type=int, default=6)

    gp = subparsers.add_parser("get-product", help="Show one product")
    gp.add_argument("--product-id", required=True)

    ap = subparsers.add_parser("add-product", help="Create a product (admin)")
    ap.add_argument("--email", required=True, help="Admin email")
    ap.add_argument("--password", required=True, help="Admin password")
    ap.add_argument("--name", required=True)
    ap.add_argument("--price", type=float, required=True)
    ap.add_argument("--category", required=True, choices=list(CATEGORIES))
    ap.add_argument("--image-url")
    ap.add_argument("--image-file")

    dp = subparsers.add_parser("delete-product", help="Delete a product (admin)")
    dp.add_argument("--email", required=True, help="Admin email")
    dp.add_argument("--password", required=True, help="Admin password")
    dp.add_argument("--product-id", required=True)
    return parser


def run_command(args, client: StoreClient) -> int:
    try:
        if args.command == "list-products":
            page = client.list_products(args.search, args.category, args.sort, args.page, args.limit)
            state = FilterState(args.search or "", args.category, args.sort, args.page, args.limit)
            show_products(page, state)
        elif args.command == "get-product":
            product = client.get_product(args.product_id)
            show_product(product, client.resolve_url(product.image))
        elif args.command == "add-product":
            client.login(args.email, args.password)
            product = client.create_product(args.name, args.price, args.category,
                                            image_url=args.image_url, image_path=args.image_file)
            show_product(product, client.resolve_url(product.image))
        elif args.command == "delete-product":
            client.login(args.email, args.password)
            console.print(show_status(client.delete_product(args.product_id), True))
    except ApiError as e:
        console.print(show_status(f"Error: {e.message}", False))
        return 1
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    client = StoreClient(base_url=args.api)
    if args.command:
        return run_command(args, client)
    menu(Storefront(client))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
