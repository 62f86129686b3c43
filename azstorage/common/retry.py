#-------------------------------------------------------------------------
# Copyright (c) Microsoft.  All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#--------------------------------------------------------------------------
import random

from ._error import _validate_in_range
from .models import LocationMode


class _Retry(object):
    '''
    The base class for Exponential and Linear retries containing shared code.

    A retry policy holds only its configuration, so one instance may be used
    by any number of operations and threads at once. Everything that changes
    between attempts lives on the :class:`~azstorage.common.models.RetryContext`.
    '''

    def __init__(self, max_attempts, max_backoff, retry_to_secondary):
        '''
        Constructs a base retry object.

        :param int max_attempts:
            The maximum number of attempts, including the first one.
        :param int max_backoff:
            The upper bound of any single backoff, in seconds.
        :param bool retry_to_secondary:
            Whether the request should be retried to secondary, if able. This should
            only be enabled of RA-GRS accounts are used and potentially stale data
            can be handled.
        '''
        _validate_in_range('max_attempts', max_attempts, 1, 1000)
        self.max_attempts = max_attempts
        self.max_backoff = max_backoff
        self.retry_to_secondary = retry_to_secondary

    def _should_retry(self, context):
        '''
        A function which determines whether or not to retry.

        :param ~azstorage.common.models.RetryContext context:
            The retry context. This contains the request, response, and other data
            which can be used to determine whether or not to retry.
        :return:
            A boolean indicating whether or not to retry the request.
        :rtype: bool
        '''
        # If max attempts are reached, do not retry.
        if context.count + 1 >= self.max_attempts:
            return False

        status = None
        if context.response and context.response.status:
            status = context.response.status

        if status is None:
            '''
            If status is None, retry as this request triggered an exception. For
            example, network issues would trigger this.
            '''
            return True
        elif 200 <= status < 300:
            '''
            This method is called after a successful response, meaning we failed
            during the response body download or parsing, or the status was not
            the one the operation expects. So, success codes should be retried.
            '''
            return True
        elif 300 <= status < 500:
            '''
            An exception occured, but in most cases it was expected. Examples could
            include a 409 Conflict or 412 Precondition Failed.
            '''
            if status == 404 and context.location_mode == LocationMode.SECONDARY:
                # Response code 404 should be retried if secondary was used.
                return True
            if status == 408 or status == 429:
                # Response code 408 is a timeout and 429 is throttling, both should be retried.
                return True
            return False
        elif status >= 500:
            '''
            Response codes above 500 with the exception of 501 Not Implemented and
            505 Version Not Supported indicate a server issue and should be retried.
            '''
            if status == 501 or status == 505:
                return False
            return True
        else:
            # If something else happened, it's unexpected. Retry.
            return True

    def _next_location_mode(self, context):
        '''
        Returns the location the next attempt should be sent to. Requests
        which may only go to one location keep it.
        '''
        if self.retry_to_secondary and context.request is not None \
                and len(context.request.host_locations) > 1:
            if context.location_mode == LocationMode.PRIMARY:
                return LocationMode.SECONDARY
            return LocationMode.PRIMARY
        return context.location_mode

    def _retry(self, context):
        '''
        A function which determines whether and how to retry.

        :param ~azstorage.common.models.RetryContext context:
            The retry context. This contains the request, response, and other data
            which can be used to determine whether or not to retry.
        :return:
            An integer indicating how long to wait before retrying the request,
            or None to indicate no retry should be performed.
        :rtype: int or None
        '''
        if not self._should_retry(context):
            return None

        backoff = self.calculate_backoff(context.count + 2)

        # Add an extra attempt to the retry context for this retry
        context.count += 1

        # Update the location mode
        context.location_mode = self._next_location_mode(context)

        return backoff

    def calculate_backoff(self, attempt):
        '''
        Calculates how long to wait before the given attempt.

        :param int attempt:
            The number of the attempt about to be made. The first retry is
            attempt 2.
        :return:
            The number of seconds to wait.
        :rtype: float
        '''
        raise NotImplementedError()


class ExponentialRetry(_Retry):
    '''
    Exponential retry.

    Waits (2 ** (attempt - 1) - 1) * initial_backoff seconds before each retry,
    capped at max_backoff. With the defaults the waits before attempts 2, 3 and
    4 are 4, 12 and 28 seconds. An optional jitter spreads retries of many
    clients by picking the wait uniformly in a range around that value.
    '''

    def __init__(self, initial_backoff=4, max_backoff=120, max_attempts=4,
                 retry_to_secondary=False, random_jitter_range=0):
        '''
        Constructs an Exponential retry object.

        :param int initial_backoff:
            The base delay, in seconds.
        :param int max_backoff:
            The longest a single backoff may be, in seconds.
        :param int max_attempts:
            The maximum number of attempts, including the first one.
        :param bool retry_to_secondary:
            Whether the request should be retried to secondary, if able. This should
            only be enabled of RA-GRS accounts are used and potentially stale data
            can be handled.
        :param int random_jitter_range:
            A number in seconds which indicates a range to jitter/randomize for the
            back-off interval. For example, a random_jitter_range of 3 results in
            the back-off interval x to vary between x-3 and x+3.
        '''
        _validate_in_range('initial_backoff', initial_backoff, 0, max_backoff)
        self.initial_backoff = initial_backoff
        self.random_jitter_range = random_jitter_range
        super(ExponentialRetry, self).__init__(max_attempts, max_backoff, retry_to_secondary)

    def retry(self, context):
        '''
        A function which determines whether and how to retry.

        :param ~azstorage.common.models.RetryContext context:
            The retry context. This contains the request, response, and other data
            which can be used to determine whether or not to retry.
        :return:
            An integer indicating how long to wait before retrying the request,
            or None to indicate no retry should be performed.
        :rtype: int or None
        '''
        return self._retry(context)

    def calculate_backoff(self, attempt):
        backoff = min((pow(2, attempt - 1) - 1) * self.initial_backoff, self.max_backoff)
        if not self.random_jitter_range:
            return backoff

        random_generator = random.Random()
        random_range_start = backoff - self.random_jitter_range if backoff > self.random_jitter_range else 0
        random_range_end = min(backoff + self.random_jitter_range, self.max_backoff)
        return random_generator.uniform(random_range_start, random_range_end)


class LinearRetry(_Retry):
    '''
    Linear retry. Waits the same number of seconds before every retry.
    '''

    def __init__(self, backoff=30, max_backoff=120, max_attempts=4,
                 retry_to_secondary=False, random_jitter_range=0):
        '''
        Constructs a Linear retry object.

        :param int backoff:
            The backoff interval, in seconds, between retries.
        :param int max_backoff:
            The longest a single backoff may be, in seconds.
        :param int max_attempts:
            The maximum number of attempts, including the first one.
        :param bool retry_to_secondary:
            Whether the request should be retried to secondary, if able. This should
            only be enabled of RA-GRS accounts are used and potentially stale data
            can be handled.
        :param int random_jitter_range:
            A number in seconds which indicates a range to jitter/randomize for the
            back-off interval. For example, a random_jitter_range of 3 results in
            the back-off interval x to vary between x-3 and x+3.
        '''
        self.backoff = backoff
        self.random_jitter_range = random_jitter_range
        super(LinearRetry, self).__init__(max_attempts, max_backoff, retry_to_secondary)

    def retry(self, context):
        '''
        A function which determines whether and how to retry.

        :param ~azstorage.common.models.RetryContext context:
            The retry context. This contains the request, response, and other data
            which can be used to determine whether or not to retry.
        :return:
            An integer indicating how long to wait before retrying the request,
            or None to indicate no retry should be performed.
        :rtype: int or None
        '''
        return self._retry(context)

    def calculate_backoff(self, attempt):
        backoff = min(self.backoff, self.max_backoff)
        if not self.random_jitter_range:
            return backoff

        # the backoff interval normally does not change, however there is the possibility
        # that it was modified by accessing the property directly after initializing the object
        random_generator = random.Random()
        random_range_start = backoff - self.random_jitter_range if backoff > self.random_jitter_range else 0
        random_range_end = min(backoff + self.random_jitter_range, self.max_backoff)
        return random_generator.uniform(random_range_start, random_range_end)


def no_retry(context):
    '''
    Specifies never to retry.

    :param ~azstorage.common.models.RetryContext context:
        The retry context.
    :return:
        Always returns None to indicate never to retry.
    :rtype: None
    '''
    return None
