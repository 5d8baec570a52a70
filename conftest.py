import pytest

from models import make_session_factory


# ----------------------------------------------------------------------
# Stand-in for the googleapiclient Sheets service: records every call and
# answers like the real API would.
# ----------------------------------------------------------------------
class FakeRequest:
    def __init__(self, result, error=None):
        self.result = result
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.result


class FakeSpreadsheets:
    def __init__(self, service):
        self.service = service

    def create(self, body):
        self.service.calls.append(("create", body))
        created = {
            "spreadsheetId": self.service.spreadsheet_id,
            "properties": dict(body["properties"]),
            "sheets": [
                {"properties": dict(sheet["properties"], sheetId=sheet_id)}
                for sheet, sheet_id in zip(body["sheets"], self.service.sheet_ids)
            ],
        }
        return FakeRequest(created, self.service.errors.get("create"))

    def batchUpdate(self, spreadsheetId, body):
        self.service.calls.append(("batchUpdate", spreadsheetId, body))
        replies = [{} for _ in body["requests"]]
        result = {"spreadsheetId": spreadsheetId, "replies": replies}
        return FakeRequest(result, self.service.errors.get("batchUpdate"))


class FakeSheetsService:
    def __init__(self, spreadsheet_id="sheet-abc123", sheet_ids=(0, 1234567)):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_ids = sheet_ids
        self.calls = []
        self.errors = {}

    def spreadsheets(self):
        return FakeSpreadsheets(self)

    def batch_updates(self):
        return [call for call in self.calls if call[0] == "batchUpdate"]


@pytest.fixture
def fake_service():
    return FakeSheetsService()


@pytest.fixture
def session_factory():
    return make_session_factory("sqlite://")


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def client(session_factory, fake_service, monkeypatch):
    import server
    from sheets import SheetsHelper

    tokens = []

    def helper(token):
        tokens.append(token)
        return SheetsHelper(token, service=fake_service)

    monkeypatch.setattr(server, "SheetsHelper", helper)
    monkeypatch.setitem(server.app.config, "SESSION_FACTORY", session_factory)
    monkeypatch.setitem(server.app.config, "TESTING", True)
    with server.app.test_client() as client:
        client.tokens = tokens
        yield client
