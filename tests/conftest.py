import pytest

from occupancy_map.models import SensorRecord

SAMPLE_FEED = """id;name;type;lat;long;co2;temp;occupancyRate;wagonsOccupancyList;floorsOccupancyList
1;Gare du Nord;Gare;48,8809;2,3553;612;19,5;64;;
2;Central Café;Restaurant;48,8566;2,3522;830;21,8;72;;

3;Tour Montparnasse;Building;48,8421;2,3219;[540, 610, 580, 700];[20.5, 21.0, 21.4, 22.1];;;[20, 47,38,79]
4;RER B 1234;Vehicle;48,8650;2,3470;[900,870,950];[19,20,21];;20,47,38,79;
5;Hopital Lariboisiere;Hopital;48,8828;2,3527;450;20,1;;;
6;Bus 38;Bus;48,8700;2,3490;700;18,9;55;;
"""


@pytest.fixture
def sample_feed():
    return SAMPLE_FEED


@pytest.fixture
def make_record():
    def _make(name="Sensor", type="Gare", **kwargs):
        kwargs.setdefault("latitude", 48.85)
        kwargs.setdefault("longitude", 2.35)
        return SensorRecord(name=name, type=type, **kwargs)
    return _make
