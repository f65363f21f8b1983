"""
watch_events.py
---------------
Follows the removable storage event stream and prints the current device
list every time a device is plugged in or removed.

    python watch_events.py http://nas.local:5000
"""
import sys
import logging

import requests

from disk_manager.client import UsbEventsClient


def main(base_url='http://127.0.0.1:5000'):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
    base_url = base_url.rstrip('/')
    session = requests.Session()

    def on_change():
        try:
            resp = session.get(f"{base_url}/storage", timeout=15)
            resp.raise_for_status()
        except requests.RequestException as e:
            print(f"Could not refresh device list: {e}")
            return
        devices = resp.json().get('removable', [])
        print(f"{len(devices)} removable device(s):")
        for d in devices:
            state = d['mountpoint'] or 'not mounted'
            print(f"  {d['name']:<6} {d['sizeHuman']:>8}  {d['deviceType']:<8} {d.get('label') or d['model']}  ({state})")

    client = UsbEventsClient(f"{base_url}/usb-events", on_change, session=session)
    on_change()
    try:
        client.run()
    except KeyboardInterrupt:
        client.stop()


if __name__ == '__main__':
    main(*sys.argv[1:2])
