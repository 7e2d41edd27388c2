import math

from services import layout_settings
from services.models import Package


def package_count(quantity, package_size):
    if quantity <= 0:
        return 0
    return max(math.ceil(quantity / package_size), 1)


def units_in_package(quantity, package_size, index):
    return max(min(package_size, quantity - (index * package_size)), 0)


def sort_by_position(items):
    # Keep the user's ordering; unset positions go last.
    return sorted(items, key=lambda item: item.sort_position)


def package_items(items, assumptions=None, max_packages_per_line=None):
    """Split each item into fixed-size packages, the atomic unit of placement.

    Items at or above the large-length threshold go in bundles of
    ``package_size_large`` units, shorter ones in bundles of
    ``package_size_small``. Zero-length items still produce packages so they
    reach the placer instead of vanishing.

    ``max_packages_per_line`` stops a line once no more of its packages could
    fit; the placer reports the units never packaged as unplaced.
    """
    assumptions = layout_settings.resolve_assumptions(assumptions)
    packages = []
    for line, item in enumerate(sort_by_position(items)):
        length = item.length or 0.0
        uses_large = layout_settings.is_large_length(length, assumptions)
        size = layout_settings.package_size_for(length, assumptions)
        count = package_count(item.quantity, size)
        if max_packages_per_line is not None:
            count = min(count, max_packages_per_line)
        for index in range(count):
            packages.append(
                Package(
                    item=item,
                    units=units_in_package(item.quantity, size, index),
                    length=length,
                    uses_large_package=uses_large,
                    index=index,
                    line=line,
                )
            )
    return packages
