# accounting/__init__.py
"""
Accounting app - the cross-cutting layer of PropLedger.

This app provides:
- AccountingModule: as-of batch, dashboard and consolidated reports
- exceptions: the error taxonomy mapped onto HTTP status codes
- api: response envelopes, pagination and the DRF exception handler
- exports: CSV / XLSX / PDF renderings of report payloads
- urls: the API route set mounted at api/accounting/ and api/v1/
"""
