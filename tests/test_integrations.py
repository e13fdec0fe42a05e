import threading
import time

from app import config
from app.integrations import firebase


def test_firebase_app_is_initialized_once_across_threads(monkeypatch):
    initialized = []

    def slow_initialize_app(cred, options):
        time.sleep(0.05)
        app = object()
        initialized.append(app)
        return app

    monkeypatch.setattr(firebase, "_firebase_app", None)
    monkeypatch.setattr(config, "FIREBASE_DATABASE_URL", "https://patrick-travel.firebaseio.com")
    monkeypatch.setattr(config, "FIREBASE_CREDENTIALS_PATH", "")
    monkeypatch.setattr(firebase.credentials, "ApplicationDefault", lambda: "default-credentials")
    monkeypatch.setattr(firebase.firebase_admin, "initialize_app", slow_initialize_app)

    start = threading.Barrier(4)
    apps = []

    def worker():
        start.wait()
        apps.append(firebase.get_firebase_app())

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(initialized) == 1
    assert apps == initialized * 4
