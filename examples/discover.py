import logging
import sys
import time
from colorama import Fore, Style
from lifxcontrol import LifxConfig, LifxControl, LifxLight, LifxTimeoutError, run_control

"""
Discover LIFX lights on the local network and print what they report.

    python examples/discover.py [config.yaml]
"""


def setup_logger() -> logging.Logger:
    logger = logging.getLogger('LifxDiscover')
    logger.setLevel(logging.DEBUG)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s.%(msecs)03d %(levelname)s: %(message)s', datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)
    return logger


async def main(lifx: LifxControl):
    timer_start = time.time()

    print("Lights")
    async for device in lifx.discover(timeout=3.0):
        try:
            light = await LifxLight.create(control=lifx, device=device)
        except LifxTimeoutError:
            print(Fore.RED + f"  • {device.mac_address} at {device.host} did not answer" + Style.RESET_ALL)
            continue
        snapshot = light.snapshot
        print(f"  • {light}")
        print(Fore.CYAN + f"      = {snapshot.product.name if snapshot.product else 'unknown product'}, firmware {snapshot.firmware}" + Style.RESET_ALL)
        print(f"      = {'on' if light.power else 'off'}, {light.color}")
        if light.zones:
            print(f"      = {len(light.zones)} zones{' (extended)' if snapshot.extended_multizone else ''}")

    timer_end = time.time()
    print(f"Time taken: {timer_end - timer_start} seconds")

if __name__ == "__main__":
    config = LifxConfig.from_yaml(sys.argv[1]) if len(sys.argv) > 1 else LifxConfig()
    run_control(main, config=config, logger=setup_logger())
