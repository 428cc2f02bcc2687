from PySide6.QtCore import QAbstractTableModel, Qt, QModelIndex

from ...utils.helpers import fmt_money
from .pricing import below_floor, line_base, resolve_min_price


class OrderLinesTableModel(QAbstractTableModel):
    """Read-only view of the draft lines, including the advisory min price."""

    HEADERS = ["#", "Product", "Qty", "Unit Price", "GST %", "Min Price", "Line Total"]
    BELOW_FLOOR_ROLE = Qt.UserRole + 1

    def __init__(self, rows: list):
        super().__init__()
        self._rows = rows

    def rowCount(self, parent=QModelIndex()):
        return len(self._rows)

    def columnCount(self, parent=QModelIndex()):
        return len(self.HEADERS)

    def data(self, idx, role=Qt.DisplayRole):
        if not idx.isValid():
            return None
        ln = self._rows[idx.row()]
        if role == self.BELOW_FLOOR_ROLE:
            return below_floor(ln)
        if role in (Qt.DisplayRole, Qt.EditRole):
            p = ln.product
            m = [
                idx.row() + 1,
                p.description if p else "",
                str(ln.quantity),
                fmt_money(ln.unit_price),
                "" if ln.tax_rate_percent is None else f"{ln.tax_rate_percent:g}",
                fmt_money(resolve_min_price(p)),
                fmt_money(line_base(ln)),
            ]
            return m[idx.column()]
        return None

    def headerData(self, s, o, role=Qt.DisplayRole):
        return self.HEADERS[s] if o == Qt.Horizontal and role == Qt.DisplayRole else super().headerData(s, o, role)

    def at(self, row: int):
        return self._rows[row]

    def replace(self, rows: list):
        self.beginResetModel()
        self._rows = rows
        self.endResetModel()
