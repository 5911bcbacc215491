from backoffice.services.row_mapper import Accepted, Rejected, map_row, FIELD_ALIASES


def _row(**kw):
    base = {
        "DATA": "01/02/2024",
        "RECEBER VP": "R$ 1.000,00",
        "PAGAR VP": "R$ 250,50",
        "RECEBER TGN": "R$ 300,00",
        "PAGAR TGN": "",
        "TOTAL RECEBER": "R$ 1.300,00",
        "TOTAL A PAGAR": "R$ 250,50",
        "SALDO DIARIO": "R$ 1.049,50",
        "SALDO ACUMULADO": "R$ 10.049,50",
    }
    base.update(kw)
    return base


def test_map_row_accepts_full_row():
    res = map_row(_row(), 2, 7, "jan.csv")
    assert isinstance(res, Accepted)
    e = res.entry
    assert e.date == "01/02/2024"
    assert e.uploaded_by == 7
    assert e.source_file_name == "jan.csv"
    assert e.line == 2
    assert e.receivable_vp == 1000.0
    assert e.payable_vp == 250.5
    assert e.receivable_tgn == 300.0
    assert e.payable_tgn == 0.0
    assert e.total_receivable == 1300.0
    assert e.total_payable == 250.5
    assert e.daily_balance == 1049.5
    assert e.cumulative_balance == 10049.5
    assert set(e.amounts()) == set(FIELD_ALIASES)


def test_map_row_underscore_and_short_aliases():
    row = {"DATA": "3-4-2024", "RECEBER_VP": "1,00", "VP_PAGAR": "2,00", "TOTAL_REC": "3,00", "SALDO_ACUM": "4,00"}
    res = map_row(row, 5, None, "f.csv")
    assert isinstance(res, Accepted)
    assert res.entry.date == "03/04/2024"
    assert res.entry.receivable_vp == 1.0
    assert res.entry.payable_vp == 2.0
    assert res.entry.total_receivable == 3.0
    assert res.entry.cumulative_balance == 4.0
    assert res.entry.daily_balance == 0.0


def test_map_row_falls_back_to_first_date_like_value():
    row = {"Dia": "3/4/2024", "Obs": "05/05/2025", "TOTAL RECEBER": "10,00"}
    res = map_row(row, 3, None, "f.csv")
    assert isinstance(res, Accepted)
    assert res.entry.date == "03/04/2024"


def test_map_row_prefers_date_header_over_fallback():
    row = {"Obs": "05/05/2025", "Date": "2024-04-03"}
    res = map_row(row, 3, None, "f.csv")
    assert res.entry.date == "03/04/2024"


def test_map_row_rejects_unparseable_date_with_context():
    row = _row(DATA="xyz")
    res = map_row(row, 9, None, "f.csv")
    assert isinstance(res, Rejected)
    assert res.line == 9
    assert '"xyz"' in res.reason
    assert "file line 9" in res.reason
    assert res.raw == row


def test_map_row_rejects_missing_date():
    row = {"TOTAL RECEBER": "10,00", "NOTE": "sem data"}
    res = map_row(row, 4, None, "f.csv")
    assert isinstance(res, Rejected)
    assert "MISSING" in res.reason


def test_map_row_skips_placeholder_only_rows():
    assert map_row({"_0": "01/02/2024", "_1": "10,00"}, 2, None, "f.csv") is None


def test_map_row_with_some_placeholders_is_not_skipped():
    res = map_row({"DATA": "01/02/2024", "_3": "extra"}, 2, None, "f.csv")
    assert isinstance(res, Accepted)


def test_map_row_rejects_partial_dates():
    res = map_row({"DATA": "Dec", "TOTAL RECEBER": "R$ 1,00"}, 40, None, "f.csv")
    assert isinstance(res, Rejected)
    assert '"Dec"' in res.reason
