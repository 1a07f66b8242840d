import collections
import xml.etree.ElementTree as ET

CHUNK_SIZE = 4096

def local_name(tag):
    """
    Strips the '{namespace}' prefix ElementTree puts on qualified tags.
    """
    return tag.rpartition('}')[2]

class XMLScanner:
    """
    Cursor over the start elements of an XML document.

    The body is already in memory; it is fed to a pull parser chunk by chunk
    and parsing stops once the caller stops calling next(). Elements parsed so
    far stay attached to the tree built by the parser. A scanner is good for
    one pass only: to scan again, fetch the document again.
    """
    def __init__(self, data, chunk_size=CHUNK_SIZE):
        if isinstance(data, str):
            data = data.encode('utf-8')
        self._parser = ET.XMLPullParser(events=('start', 'end'))
        self._data = data
        self._offset = 0
        self._chunk_size = chunk_size
        self._events = collections.deque()
        self._closed = False
        self._failure = None
        self.current = None
        self.error = None

    def _next_event(self):
        while not self._events:
            # events parsed before a syntax error are handed out first
            if self._failure is not None:
                raise self._failure
            if self._closed:
                return None
            try:
                if self._offset < len(self._data):
                    chunk = self._data[self._offset:self._offset + self._chunk_size]
                    self._offset += len(chunk)
                    self._parser.feed(chunk)
                else:
                    self._closed = True
                    self._parser.close()
                for event in self._parser.read_events():
                    self._events.append(event)
            except ET.ParseError as e:
                self._failure = e
        return self._events.popleft()

    def next(self):
        """
        Advances to the next start element. Returns False at the end of the
        document or when the parser fails; the failure is kept in self.error.
        """
        self.current = None
        if self.error is not None:
            return False
        try:
            while True:
                event = self._next_event()
                if event is None:
                    return False
                kind, elem = event
                if kind == 'start':
                    self.current = elem
                    return True
        except ET.ParseError as e:
            self.error = e
            return False

    def element(self):
        """
        Reads up to the end of the current element and returns it fully built.
        """
        elem = self.current
        if elem is None:
            return None
        depth = 1
        try:
            while depth:
                event = self._next_event()
                if event is None:
                    break
                kind, _ = event
                depth += 1 if kind == 'start' else -1
        except ET.ParseError as e:
            # next() will report it and stop the scan
            self.error = e
            return None
        return elem

    def text(self):
        """
        Character data directly after the current start element, or None.
        """
        elem = self.element()
        if elem is None:
            return None
        return elem.text
