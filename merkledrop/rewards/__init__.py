from merkledrop.rewards.common import *
from merkledrop.rewards.pools import *
