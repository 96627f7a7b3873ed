from merkledrop.queries.common import *
from merkledrop.queries.transfers import *
from merkledrop.queries.classifier import *
from merkledrop.queries.balances import *
from merkledrop.queries.pools import *
from merkledrop.queries.positions import *
from merkledrop.queries.distributor import *
