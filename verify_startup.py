from app import create_app
from config import Config
from models import DeviceLabel


class MockConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    MOCK_HARDWARE = True
    HOTPLUG_MONITOR = False


def test_startup_consistency():
    print("Starting verification of startup consistency (mock hardware)...")
    app = create_app(MockConfig)
    client = app.test_client()
    all_passed = True

    with app.app_context():
        try:
            print(f"[OK] Label table exists ({DeviceLabel.query.count()} label(s))")
        except Exception as e:
            print(f"[FAIL] Label table missing: {e}")
            all_passed = False

    resp = client.get('/storage')
    data = resp.get_json() or {}
    names = [d['name'] for d in data.get('removable', [])]
    if resp.status_code == 200 and names == ['sdb']:
        print(f"[OK] /storage lists removable devices: {names}")
    else:
        print(f"[FAIL] /storage returned {resp.status_code}: {data}")
        all_passed = False

    resp = client.post('/mount', json={'device': 'sda', 'password': Config.MOCK_SUDO_PASSWORD})
    if resp.status_code == 403:
        print("[OK] System disk is refused")
    else:
        print(f"[FAIL] Mounting the system disk returned {resp.status_code}")
        all_passed = False

    if all_passed:
        print("\nSUCCESS: Startup is consistent!")
    else:
        print("\nFAILURE: Some startup checks failed.")


if __name__ == '__main__':
    test_startup_consistency()
