"""orbwatch Quickstart — scan a few stations for close approaches."""

import logging

from sgp4.api import Satrec
from sgp4.conveniences import sat_epoch_datetime

from orbwatch import detect_realtime, format_probability, predict_horizon, tracked_object_from_tle

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

TLES = [
    ("ISS (ZARYA)",
     "1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993",
     "2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596"),
    ("CSS (TIANHE)",
     "1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993",
     "2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157018"),
    ("HST",
     "1 20580U 90037B   24045.55478014  .00001456  00000-0  73052-4 0  9994",
     "2 20580  28.4701  41.0696 0002622 348.3544 140.2428 15.09435694872912"),
]

now = sat_epoch_datetime(Satrec.twoline2rv(TLES[0][1], TLES[0][2]))
objects = [tracked_object_from_tle(l1, l2, name, now=now) for name, l1, l2 in TLES]

print("Right now:")
for e in detect_realtime(objects, threshold_km=10000.0, now=now):
    print(f"  {e.object_a_name} / {e.object_b_name}: {e.distance_km:.2f} km [{e.risk_level.value}]")


def show(progress):
    print(f"  [{progress.percent:3d}%] {progress.phase.value}: {progress.message}")


print("Next 24 hours:")
events = predict_horizon(objects, threshold_km=1000.0, coverage_mode="quick", start=now, on_progress=show)
for e in events:
    print(
        f"  {e.tca:%Y-%m-%d %H:%M:%S} | {e.object_a_name} / {e.object_b_name} | "
        f"{e.distance_km:.2f} km | Pc={format_probability(e.collision_probability)}"
    )
