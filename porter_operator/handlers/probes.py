import kopf
import porter_operator
from porter_operator.utils.helpers import now


@kopf.on.probe(id='now')
def get_current_timestamp(**kwargs):
    return now()


@kopf.on.probe(id='version')
def get_operator_version(**kwargs):
    return porter_operator.__version__
